# profile_store.py
# Lever configurations live in one XML profile, written atomically so a lever
# is never left half-calibrated on disk.
import os
import tempfile
from datetime import datetime, timezone

from lxml import etree

from errors import LeverNotFound, NotchValidationError
from notches import Notch, LeverConfig, FLOAT_FIELDS, BLDC_FIELDS

ROOT_TAG = "LeverLinkProfile"
LEVER_ENDPOINTS = ("value_endpoint", "min_endpoint", "max_endpoint", "notch_count_endpoint", "notch_index_endpoint")


def utc_now():
    return datetime.now(timezone.utc).replace(microsecond=0)


def lever_to_element(config):
    lever_el = etree.Element("Lever", id=config.lever_id, inverted=str(config.inverted).lower())
    if config.calibrated_at:
        lever_el.set("calibrated_at", config.calibrated_at.isoformat())
    for key in ("description",) + LEVER_ENDPOINTS:
        value = getattr(config, key)
        if value is not None:
            lever_el.set(key, value)
    for notch in config.notches:
        notch_el = etree.SubElement(lever_el, "Notch", index=str(notch.index), type=notch.type)
        for key, value in notch.to_dict().items():
            if key in ("index", "type") or value is None:
                continue
            notch_el.set(key, str(value))
    return lever_el


def element_to_lever(lever_el):
    notches = []
    for notch_el in lever_el.iterfind("Notch"):
        data = {"index": int(notch_el.get("index")), "type": notch_el.get("type"),
                "description": notch_el.get("description")}
        for key in FLOAT_FIELDS:
            if notch_el.get(key) is not None:
                data[key] = float(notch_el.get(key))
        for key in BLDC_FIELDS:
            if notch_el.get(key) is not None:
                data[key] = int(notch_el.get(key))
        notches.append(Notch.from_dict(data))
    calibrated_at = lever_el.get("calibrated_at")
    return LeverConfig(
        lever_el.get("id"), notches,
        inverted=lever_el.get("inverted", "false").lower() == "true",
        calibrated_at=datetime.fromisoformat(calibrated_at) if calibrated_at else None,
        description=lever_el.get("description"),
        **{key: lever_el.get(key) for key in LEVER_ENDPOINTS},
    )


class LeverProfileStore:
    def __init__(self, path):
        self.path = path

    def load_all(self):
        if not os.path.exists(self.path):
            return []
        tree = etree.parse(self.path)
        return [element_to_lever(el) for el in tree.xpath(f"/{ROOT_TAG}/Lever")]

    def get(self, lever_id):
        for config in self.load_all():
            if config.lever_id == lever_id:
                return config
        raise LeverNotFound(f"No lever {lever_id!r} in {self.path}")

    def save(self, config):
        """Insert or replace one lever (its whole notch set included)."""
        config.check()
        levers = [c for c in self.load_all() if c.lever_id != config.lever_id]
        levers.append(config)
        self._write(levers)
        return config

    def save_calibration(self, config, notches):
        """Replace the lever's notches with a fresh analysis result and stamp it."""
        return self.save(config.copy(notches=notches, calibrated_at=utc_now()))

    def update_notch_input_ranges(self, lever_id, ranges, inverted=None):
        """
        Write hardware ranges for the given notch indexes, {index: (min, max)},
        optionally together with the lever's inverted flag. All or nothing.
        """
        config = self.get(lever_id)
        known = {n.index for n in config.notches}
        unknown = sorted(set(ranges) - known)
        if unknown:
            raise NotchValidationError([f"lever {lever_id} has no notch {i}" for i in unknown])
        notches = [n.with_input_range(*ranges[n.index]) if n.index in ranges else n for n in config.notches]
        changes = {"notches": notches, "calibrated_at": utc_now()}
        if inverted is not None:
            changes["inverted"] = inverted
        return self.save(config.copy(**changes))

    def delete(self, lever_id):
        levers = self.load_all()
        remaining = [c for c in levers if c.lever_id != lever_id]
        if len(remaining) == len(levers):
            raise LeverNotFound(f"No lever {lever_id!r} in {self.path}")
        self._write(remaining)

    def _write(self, levers):
        root = etree.Element(ROOT_TAG)
        for config in sorted(levers, key=lambda c: c.lever_id):
            root.append(lever_to_element(config))
        directory = os.path.dirname(os.path.abspath(self.path))
        fd, tmp_path = tempfile.mkstemp(prefix=".levers-", suffix=".xml", dir=directory)
        try:
            with os.fdopen(fd, "wb") as f:
                etree.ElementTree(root).write(f, pretty_print=True, xml_declaration=True, encoding='UTF-8')
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
