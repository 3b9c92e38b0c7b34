"""YAML configuration.

Example ``config.yaml``::

	audio:
	  sample_rate: 44100
	  channels: 2
	  blocksize: 256
	  device: null

	midi:
	  input_device: "Maschine Mikro MK3"
	  note_map: null          # {note: channel, ...} - 16 entries

	sequencer:
	  bpm: 120
	  quantization: sixteenth # quarter | eighth | sixteenth
	  metronome: false
	  metronome_sound: null
	  spin_wait: true
	  highlight_ms: 100

	storage:
	  directory: ~/.beatpad
	  sounds_dir: .

	log_level: INFO

Every key is optional.
"""

import dataclasses
import logging
import os
import typing

import yaml


logger = logging.getLogger(__name__)


@dataclasses.dataclass
class AudioConfig:

	sample_rate: int = 44100
	channels: int = 2
	blocksize: int = 256
	device: typing.Optional[typing.Union[int, str]] = None


@dataclasses.dataclass
class MidiConfig:

	input_device: typing.Optional[str] = None
	note_map: typing.Optional[typing.Dict[int, int]] = None


@dataclasses.dataclass
class SequencerConfig:

	bpm: int = 120
	quantization: str = "sixteenth"
	metronome: bool = False
	metronome_sound: typing.Optional[str] = None
	spin_wait: bool = True
	highlight_ms: float = 100


@dataclasses.dataclass
class StorageConfig:

	directory: str = "~/.beatpad"
	sounds_dir: str = "."


@dataclasses.dataclass
class Config:

	audio: AudioConfig = dataclasses.field(default_factory=AudioConfig)
	midi: MidiConfig = dataclasses.field(default_factory=MidiConfig)
	sequencer: SequencerConfig = dataclasses.field(default_factory=SequencerConfig)
	storage: StorageConfig = dataclasses.field(default_factory=StorageConfig)
	log_level: str = "INFO"


_SECTIONS: typing.Dict[str, typing.Type[typing.Any]] = {
	"audio": AudioConfig,
	"midi": MidiConfig,
	"sequencer": SequencerConfig,
	"storage": StorageConfig,
}


def _build_section (name: str, cls: typing.Type[typing.Any], values: typing.Any) -> typing.Any:

	if values is None:
		return cls()

	if not isinstance(values, dict):
		raise ValueError(f"Config section '{name}' must be a mapping")

	known = {field.name for field in dataclasses.fields(cls)}

	for key in values:
		if key not in known:
			logger.warning(f"Unknown config key '{name}.{key}' ignored")

	return cls(**{key: value for key, value in values.items() if key in known})


def parse_config (data: typing.Any) -> Config:

	"""
	Build a ``Config`` from a decoded YAML document.
	"""

	if data is None:
		return Config()

	if not isinstance(data, dict):
		raise ValueError("Config must be a mapping")

	for key in data:
		if key not in _SECTIONS and key != "log_level":
			logger.warning(f"Unknown config section '{key}' ignored")

	sections = {name: _build_section(name, cls, data.get(name)) for name, cls in _SECTIONS.items()}

	config = Config(log_level=str(data.get("log_level", "INFO")).upper(), **sections)

	if config.midi.note_map is not None:
		config.midi.note_map = {int(note): int(channel) for note, channel in config.midi.note_map.items()}

	return config


def load_config (config_path: str = "config.yaml") -> Config:

	"""
	Load configuration from a YAML file; a missing file gives the defaults.
	"""

	if not os.path.exists(config_path):
		logger.warning(f"Config file {config_path} not found. Using defaults.")
		return Config()

	with open(config_path, "r") as f:
		return parse_config(yaml.safe_load(f))
