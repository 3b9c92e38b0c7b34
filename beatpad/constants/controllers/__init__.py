"""Pad controller note maps.

Each module maps the note numbers a controller sends to the 16 channels:
- ``beatpad.constants.controllers.maschine_mikro_mk3`` - Native Instruments Maschine Mikro MK3
"""
