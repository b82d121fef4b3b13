"""Tests for TrackingIdGenerator: format, ordering, entropy."""

from __future__ import annotations

import re

import pytest

from src.services.tracking_id import SUFFIX_ALPHABET, TrackingIdGenerator

_FORMAT = re.compile(r"^GRS-[0-9A-Z]{9}-[0-9ABCDEFGHJKMNPQRSTVWXYZ]{8}$")


class TestFormat:
    def test_default_format(self) -> None:
        tracking_id = TrackingIdGenerator().generate()
        assert _FORMAT.match(tracking_id), f"unexpected tracking ID {tracking_id!r}"

    def test_time_component_is_zero_padded_base36(self) -> None:
        generator = TrackingIdGenerator(clock=lambda: 36**3 + 1)
        assert generator.generate().split("-")[1] == "000001001"

    def test_epoch_zero(self) -> None:
        assert TrackingIdGenerator(clock=lambda: 0).generate().split("-")[1] == "000000000"

    def test_prefix_is_normalised(self) -> None:
        assert TrackingIdGenerator(" cmp ").generate().startswith("CMP-")

    def test_suffix_avoids_lookalike_letters(self) -> None:
        generator = TrackingIdGenerator(suffix_length=16)
        for _ in range(200):
            suffix = generator.generate().rsplit("-", 1)[1]
            assert not set(suffix) & set("ILOU")
            assert set(suffix) <= set(SUFFIX_ALPHABET)


class TestEntropy:
    def test_entropy_bits(self) -> None:
        assert TrackingIdGenerator().entropy_bits == 40
        assert TrackingIdGenerator(suffix_length=12).entropy_bits == 60

    def test_rejects_short_suffix(self) -> None:
        with pytest.raises(ValueError):
            TrackingIdGenerator(suffix_length=5)

    def test_same_millisecond_ids_differ(self) -> None:
        generator = TrackingIdGenerator(clock=lambda: 1_700_000_000_000)
        ids = {generator.generate() for _ in range(1000)}
        assert len(ids) == 1000


class TestOrdering:
    def test_ids_sort_by_time(self) -> None:
        earlier = TrackingIdGenerator(clock=lambda: 1_700_000_000_000).generate()
        later = TrackingIdGenerator(clock=lambda: 1_700_000_000_001).generate()
        assert earlier.split("-")[1] < later.split("-")[1]
