"""
Arranger - the arrangement engine of an auto-accompaniment application.

A song's lead sheet (sections on a bar timeline) is turned into a timeline
of parts, each playing a rhythm, and the rhythms' voices are given MIDI
channels and instruments:

	LeadSheet -> SgsUpdater -> SongStructure -> MidiMix

Each stage checks a change before it happens (any stage may reject it, in
which case nothing changes) and reacts once it is done. One undo manager
records every stage, so a single undo reverts a lead sheet change together
with the part and channel changes it caused.

Modules:

- ``arranger.leadsheet`` - sections on a bar timeline
- ``arranger.song_structure`` - parts, contiguous over the song
- ``arranger.sgs_updater`` - keeps the parts in line with the lead sheet
- ``arranger.midimix`` - the 16-channel table, solo/mute, drum rerouting
- ``arranger.midimix_manager`` - finds, creates and caches mixes
- ``arranger.midimix_io`` - YAML mix files
- ``arranger.arrangement`` - lead sheet, parts and user phrases of one song
"""

import arranger.arrangement
import arranger.errors
import arranger.leadsheet
import arranger.midimix
import arranger.midimix_manager
import arranger.rhythm
import arranger.rhythm_database
import arranger.song_structure


Arrangement = arranger.arrangement.Arrangement
LeadSheet = arranger.leadsheet.LeadSheet
MidiMix = arranger.midimix.MidiMix
MidiMixManager = arranger.midimix_manager.MidiMixManager
RhythmDatabase = arranger.rhythm_database.RhythmDatabase
SongStructure = arranger.song_structure.SongStructure
TimeSignature = arranger.rhythm.TimeSignature
