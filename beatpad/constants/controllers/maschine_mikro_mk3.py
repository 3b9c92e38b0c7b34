"""Native Instruments Maschine Mikro MK3 pad map.

In its default MIDI mode the Mikro MK3 sends notes 0-15, numbered from the
bottom-left pad upwards.  Channels are numbered from the top-left pad, so the
rows are flipped::

	pad layout (channels)      notes sent
	 0  1  2  3                12 13 14 15
	 4  5  6  7                 8  9 10 11
	 8  9 10 11                 4  5  6  7
	12 13 14 15                 0  1  2  3

Pass ``MASCHINE_MIKRO_MK3_NOTE_MAP`` as the ``note_map`` of an input router::

	import beatpad.constants.controllers.maschine_mikro_mk3 as mikro

	router = beatpad.input_router.InputRouter(transport, grid, player, note_map=mikro.MASCHINE_MIKRO_MK3_NOTE_MAP)
"""

import typing


# Port names containing both words are picked automatically when no input
# device is configured.
PORT_NAME_KEYWORDS = ("maschine", "mikro")


MASCHINE_MIKRO_MK3_NOTE_MAP: typing.Dict[int, int] = {
	12: 0,  13: 1,  14: 2,  15: 3,
	8: 4,   9: 5,   10: 6,  11: 7,
	4: 8,   5: 9,   6: 10,  7: 11,
	0: 12,  1: 13,  2: 14,  3: 15,
}
