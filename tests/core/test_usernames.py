"""
Test suite for username and conversation-text helpers.

Tests base-name normalization, unique username generation with bounded
retries, confirmation detection and category inference.

System role: Verification of pure helpers used by signup and the turn state machine
"""

import random

import pytest

from market_map.core.usernames import (
    agenerate_unique_username,
    generate_unique_username,
    infer_category,
    is_confirmation,
    normalize_base_name,
    random_digits,
    wants_result,
)


class TestNormalizeBaseName:
    """Test suite for normalize_base_name()."""

    def test_should_lowercase_and_strip_symbols(self) -> None:
        assert normalize_base_name(" Atlas !! ") == "atlas"

    def test_should_return_empty_for_blank(self) -> None:
        assert normalize_base_name("  ") == ""
        assert normalize_base_name(None) == ""

    def test_should_drop_inner_whitespace_and_non_ascii(self) -> None:
        assert normalize_base_name("Jo Ann_Smith-2") == "joannsmith2"
        assert normalize_base_name("Zoë") == "zo"


class TestGenerateUniqueUsername:
    """Test suite for generate_unique_username()."""

    def test_should_append_three_digits(self) -> None:
        # Arrange
        rng = random.Random(7)

        # Act
        username = generate_unique_username("Atlas", lambda candidate: False, rng=rng)

        # Assert
        assert username is not None
        assert username.startswith("atlas")
        suffix = username[len("atlas"):]
        assert len(suffix) == 3
        assert 100 <= int(suffix) <= 999

    def test_should_retry_while_candidate_is_taken(self) -> None:
        # Arrange
        seen: list[str] = []

        def is_taken(candidate: str) -> bool:
            seen.append(candidate)
            return len(seen) < 3

        # Act
        username = generate_unique_username("atlas", is_taken, rng=random.Random(1))

        # Assert
        assert len(seen) == 3
        assert username == seen[-1]

    def test_should_give_up_after_bounded_attempts(self) -> None:
        # Arrange
        calls: list[str] = []

        def always_taken(candidate: str) -> bool:
            calls.append(candidate)
            return True

        # Act
        username = generate_unique_username("atlas", always_taken, attempts=8)

        # Assert
        assert username is None
        assert len(calls) == 8

    def test_should_return_none_for_empty_base(self) -> None:
        assert generate_unique_username("!!!", lambda candidate: False) is None

    def test_random_digits_stays_in_range(self) -> None:
        rng = random.Random(42)
        assert all(100 <= random_digits(rng) <= 999 for _ in range(200))

    @pytest.mark.asyncio
    async def test_async_variant_awaits_lookup(self) -> None:
        # Arrange
        taken = {"atlas555"}

        async def is_taken(candidate: str) -> bool:
            return candidate in taken

        # Act
        username = await agenerate_unique_username("Atlas", is_taken, rng=random.Random(3))

        # Assert
        assert username is not None
        assert username not in taken


class TestConfirmation:
    """Test suite for wants_result() and is_confirmation()."""

    @pytest.mark.parametrize("message", ["yes", "OK", "sounds good", "go ahead please", "Proceed"])
    def test_should_recognize_short_affirmations(self, message: str) -> None:
        assert is_confirmation(message)

    def test_should_reject_long_messages(self) -> None:
        message = "yes but focus on mid market CRM vendors only"
        assert wants_result(message)
        assert not is_confirmation(message)

    @pytest.mark.parametrize("message", ["", "   ", "CRM software", None])
    def test_should_reject_non_affirmations(self, message: str | None) -> None:
        assert not is_confirmation(message)


class TestInferCategory:
    """Test suite for infer_category()."""

    def test_confirmation_points_back_to_category(self) -> None:
        history = [
            {"role": "user", "content": "CRM software"},
            {"role": "assistant", "content": "Plan details"},
        ]
        assert infer_category("yes", history) == "CRM software"

    def test_skips_earlier_confirmations(self) -> None:
        history = [
            {"role": "user", "content": "Data observability tools"},
            {"role": "assistant", "content": "Plan details"},
            {"role": "user", "content": "ok"},
            {"role": "assistant", "content": "Another question"},
        ]
        assert infer_category("sounds good", history) == "Data observability tools"

    def test_non_confirmation_is_used_verbatim(self) -> None:
        history = [{"role": "user", "content": "CRM software"}]
        assert infer_category("Focus on SMB vendors", history) == "Focus on SMB vendors"
