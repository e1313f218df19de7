"""Dataset buffering and append-style persistence.

Layout under the run's output directory::

    AllFrameData.json                       flat view, every scene
    FrameKeys.txt                           every key flushed by any run
    Images/<label>/DescriptiveFrameData.json
    Images/<label>/FrameKeys.txt
    Images/<label>/<key>.png                written by the host

JSON files are merged into a freshly re-read copy and replaced atomically, so
a failed write leaves the previous content in place.
"""
import json
import logging
import os
import stat
import tempfile
from typing import Callable, Dict, Iterable, Mapping

from keypoint_sim.errors import DuplicateFrameKey, IOFailure
from keypoint_sim.records import FrameRecord, to_descriptive, to_flat

logger = logging.getLogger(__name__)

DESCRIPTIVE_FILE = "DescriptiveFrameData.json"
FLAT_FILE = "AllFrameData.json"
KEYS_FILE = "FrameKeys.txt"
IMAGES_DIR = "Images"


class FrameBuffer:
    """In-memory descriptive and flat views plus every key seen this run."""

    def __init__(self):
        self.descriptive: Dict[str, FrameRecord] = {}
        self.flat: Dict[str, FrameRecord] = {}
        self.known_keys = set()

    def add(self, record: FrameRecord):
        if record.key in self.known_keys:
            raise DuplicateFrameKey(f"frame key {record.key!r} already used in this run")
        self.known_keys.add(record.key)
        self.descriptive[record.key] = record
        self.flat[record.key] = record

    def __len__(self):
        return len(self.flat)


def _load_json_object(path: str) -> Dict:
    if not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise IOFailure(f"could not read existing dataset {path}: {e}") from e
    if not isinstance(data, dict):
        raise IOFailure(f"{path} does not hold a JSON object")
    return data


def _file_mode(path: str) -> int:
    """Mode for a rewritten file: the existing one's, else what open() would give."""
    try:
        return stat.S_IMODE(os.stat(path).st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def _write_json_atomic(path: str, obj: Dict):
    directory = os.path.dirname(path) or "."
    tmp_path = None
    try:
        os.makedirs(directory, exist_ok=True)
        with tempfile.NamedTemporaryFile("w", encoding="utf-8", dir=directory,
                                         suffix=".tmp", delete=False) as f:
            tmp_path = f.name
            json.dump(obj, f, indent=2)
        # NamedTemporaryFile is created 0600
        os.chmod(tmp_path, _file_mode(path))
        os.replace(tmp_path, path)
    except OSError as e:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise IOFailure(f"could not write {path}: {e}") from e


def _merge(path: str, records: Mapping[str, FrameRecord],
           serialize: Callable[[FrameRecord], Dict]) -> int:
    if not records:
        return 0
    data = _load_json_object(path)
    for key, record in records.items():
        data[key] = serialize(record)  # last write wins
    _write_json_atomic(path, data)
    logger.info("JSON data saved to %s (%d new frames)", path, len(records))
    return len(records)


def append_descriptive(path: str, records: Mapping[str, FrameRecord]) -> int:
    return _merge(path, records, to_descriptive)


def append_flat(path: str, records: Mapping[str, FrameRecord]) -> int:
    return _merge(path, records, to_flat)


def read_keys(path: str) -> set:
    if not os.path.exists(path):
        return set()
    try:
        with open(path, "r", encoding="utf-8") as f:
            return {line.strip() for line in f if line.strip()}
    except OSError as e:
        raise IOFailure(f"could not read {path}: {e}") from e


def append_keys(path: str, keys: Iterable[str]) -> int:
    """Append the keys not already listed in ``path``; existing lines are kept as is."""
    existing = read_keys(path)
    new_keys = sorted(set(keys) - existing)
    if not new_keys:
        return 0
    try:
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        needs_newline = False
        if os.path.exists(path) and os.path.getsize(path) > 0:
            with open(path, "rb") as f:
                f.seek(-1, os.SEEK_END)
                needs_newline = f.read(1) != b"\n"
        with open(path, "a", encoding="utf-8") as f:
            if needs_newline:
                f.write("\n")
            f.write("".join(k + "\n" for k in new_keys))
    except OSError as e:
        raise IOFailure(f"could not append keys to {path}: {e}") from e
    logger.info("Frame keys saved to %s (%d new)", path, len(new_keys))
    return len(new_keys)


class DatasetWriter:
    """Resolves artifact paths inside one output directory and flushes to them."""

    def __init__(self, output_dir: str):
        self.output_dir = output_dir

    def label_dir(self, label: str) -> str:
        return os.path.join(self.output_dir, IMAGES_DIR, label)

    def image_path(self, label: str, key: str) -> str:
        return os.path.join(self.label_dir(label), f"{key}.png")

    @property
    def flat_path(self) -> str:
        return os.path.join(self.output_dir, FLAT_FILE)

    def descriptive_path(self, label: str) -> str:
        return os.path.join(self.label_dir(label), DESCRIPTIVE_FILE)

    def flush_scene(self, label: str, records: Mapping[str, FrameRecord]) -> int:
        n = append_descriptive(self.descriptive_path(label), records)
        append_keys(os.path.join(self.label_dir(label), KEYS_FILE), records.keys())
        return n

    def flush_flat(self, records: Mapping[str, FrameRecord]) -> int:
        n = append_flat(self.flat_path, records)
        append_keys(os.path.join(self.output_dir, KEYS_FILE), records.keys())
        return n
