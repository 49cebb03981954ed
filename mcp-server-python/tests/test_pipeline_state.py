"""
Tests for the pipeline state catalog.
"""

import pytest
from hypothesis import given, strategies as st

from models.pipeline_state import (
    ACTIVE_STATES,
    ARCHIVAL_STATES,
    BOARD_COLUMNS,
    ChangeKind,
    PipelineState,
    earliest_active_state,
    is_archival,
    next_for_approval,
    ordered,
    state_label,
)


class TestStateCatalog:
    def test_thirteen_states(self):
        assert len(PipelineState) == 13
        assert len(ACTIVE_STATES) == 10
        assert len(ARCHIVAL_STATES) == 3

    def test_active_and_archival_are_disjoint(self):
        assert not set(ACTIVE_STATES) & ARCHIVAL_STATES
        assert set(ACTIVE_STATES) | ARCHIVAL_STATES == set(PipelineState)

    def test_board_columns_cover_every_state_once(self):
        assert len(BOARD_COLUMNS) == len(set(BOARD_COLUMNS)) == 13
        assert BOARD_COLUMNS[:10] == ACTIVE_STATES

    def test_states_compare_equal_to_strings(self):
        assert PipelineState.TO_CALL == "TO_CALL"
        assert ChangeKind.APPROVAL == "APPROVAL"

    def test_every_state_has_a_label(self):
        for state in PipelineState:
            assert state_label(state)
        assert state_label("REFERENCES") == "References"


class TestOrdering:
    def test_main_sequence_positions(self):
        assert ordered(PipelineState.CVS_RECEIVED) == 0
        assert ordered(PipelineState.REFERENCES) == 5
        assert ordered(PipelineState.FINALIZED) == 9

    @pytest.mark.parametrize("state", sorted(ARCHIVAL_STATES, key=lambda s: s.value))
    def test_archival_states_have_no_position(self, state):
        with pytest.raises(ValueError):
            ordered(state)

    def test_next_for_approval_walks_the_sequence(self):
        state = earliest_active_state()
        visited = [state]
        while state != PipelineState.FINALIZED:
            state = next_for_approval(state)
            visited.append(state)
        assert tuple(visited) == ACTIVE_STATES

    def test_finalized_is_terminal(self):
        assert next_for_approval(PipelineState.FINALIZED) == PipelineState.FINALIZED

    def test_next_for_approval_rejects_archival(self):
        with pytest.raises(ValueError):
            next_for_approval(PipelineState.DISCARDED)

    def test_is_archival(self):
        assert is_archival(PipelineState.POSSIBLE_CANDIDATES)
        assert is_archival("DISCARDED")
        assert not is_archival(PipelineState.FINALIZED)


class TestOrderingProperties:
    @given(
        a=st.sampled_from(ACTIVE_STATES[:-1]),
    )
    def test_approval_advances_exactly_one_position(self, a):
        """For every non-terminal active state, the approval target is one position ahead."""
        assert ordered(next_for_approval(a)) == ordered(a) + 1

    @given(a=st.sampled_from(ACTIVE_STATES), b=st.sampled_from(ACTIVE_STATES))
    def test_ordering_is_total_and_consistent(self, a, b):
        """Positions are distinct for distinct states and agree with sequence order."""
        if a == b:
            assert ordered(a) == ordered(b)
        else:
            assert ordered(a) != ordered(b)
            assert (ordered(a) < ordered(b)) == (ACTIVE_STATES.index(a) < ACTIVE_STATES.index(b))
