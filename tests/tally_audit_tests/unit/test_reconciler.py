"""
End-to-end audit tests: window resolution, indexer snapshot, graph, tally and comparison.
"""

import pytest

from fakes import (
    DELEGATE_A,
    DELEGATE_B,
    DELEGATOR_C,
    POLL,
    VOTER_E,
    FakeChainReader,
    FakeIndexer,
    vote,
)
from tally_audit.core.exceptions import DataIntegrityError, LookupFailure
from tally_audit.core.lookups import LookupRunner
from tally_audit.core.models import Discrepancy, ReportedTally, Tally, VoteChoice
from tally_audit.core.reconciler import PollAuditor, compare_tallies


class TestCompareTallies:
    def test_equal_tallies_have_no_discrepancies(self):
        assert compare_tallies(Tally(yes=5, no=6), ReportedTally(yes="5", no="6")) == ()

    def test_reports_each_mismatching_side(self):
        discrepancies = compare_tallies(Tally(yes=500, no=1), ReportedTally(yes="400", no="2"))

        assert discrepancies == (
            Discrepancy(side=VoteChoice.YES, expected="400", actual="500"),
            Discrepancy(side=VoteChoice.NO, expected="2", actual="1"),
        )

    def test_describe_names_side_and_values(self):
        (discrepancy,) = compare_tallies(Tally(yes=500), ReportedTally(yes="400"))

        assert discrepancy.describe() == (
            "Yes tally mismatch: indexer reports 400, chain state gives 500"
        )

    def test_leading_zero_is_not_equal(self):
        (discrepancy,) = compare_tallies(Tally(yes=500), ReportedTally(yes="0500"))

        assert discrepancy == Discrepancy(side=VoteChoice.YES, expected="0500", actual="500")

    def test_fractional_string_is_a_discrepancy(self):
        (discrepancy,) = compare_tallies(Tally(yes=500), ReportedTally(yes="500.5"))

        assert discrepancy.expected == "500.5"
        assert discrepancy.actual == "500"


class TestPollAuditor:
    @pytest.mark.asyncio
    async def test_zero_votes_match_absent_tally(self):
        auditor = PollAuditor(FakeChainReader(), FakeIndexer(), POLL)

        report = await auditor.run()

        assert report.computed.as_strings() == {"yes": "0", "no": "0"}
        assert report.matches is True

    @pytest.mark.asyncio
    async def test_single_delegate_matching_tally(self):
        chain = FakeChainReader(delegates={DELEGATE_A}, delegated={DELEGATE_A: 500})
        indexer = FakeIndexer(
            votes=[vote(DELEGATE_A, "Yes", registered=True)], tally=ReportedTally(yes="500", no="0")
        )

        report = await PollAuditor(chain, indexer, POLL).run()

        assert report.computed.as_strings() == {"yes": "500", "no": "0"}
        assert report.matches is True
        assert report.voter_count == 1

    @pytest.mark.asyncio
    async def test_single_delegate_mismatch_reported_on_yes(self):
        chain = FakeChainReader(delegates={DELEGATE_A}, delegated={DELEGATE_A: 500})
        indexer = FakeIndexer(
            votes=[vote(DELEGATE_A, "Yes", registered=True)], tally=ReportedTally(yes="400", no="0")
        )

        report = await PollAuditor(chain, indexer, POLL).run()

        assert report.matches is False
        assert report.discrepancies == (
            Discrepancy(side=VoteChoice.YES, expected="400", actual="500"),
        )

    @pytest.mark.asyncio
    async def test_fractional_indexer_tally_is_reported_not_raised(self):
        chain = FakeChainReader(delegates={DELEGATE_A}, delegated={DELEGATE_A: 500})
        indexer = FakeIndexer(
            votes=[vote(DELEGATE_A, "Yes", registered=True)], tally=ReportedTally(yes="500.5", no="0")
        )

        report = await PollAuditor(chain, indexer, POLL).run()

        assert report.matches is False
        assert report.expected.yes == "500.5"
        assert report.discrepancies == (
            Discrepancy(side=VoteChoice.YES, expected="500.5", actual="500"),
        )

    @pytest.mark.asyncio
    async def test_closed_poll_reads_everything_at_end_block(self):
        chain = FakeChainReader(
            head=200,
            end_block=150,
            delegates={DELEGATE_A},
            delegations={DELEGATOR_C: DELEGATE_A},
            delegated={DELEGATE_A: 1000},
            pending={DELEGATOR_C: 200},
        )
        indexer = FakeIndexer(
            votes=[vote(DELEGATE_A, "Yes", registered=True), vote(DELEGATOR_C, "No")],
            tally=ReportedTally(yes="800", no="200"),
        )

        report = await PollAuditor(chain, indexer, POLL).run()

        assert report.matches is True
        assert report.window.is_active is False
        assert indexer.requests == [(POLL, 150)]
        assert chain.blocks_read() == {150}

    @pytest.mark.asyncio
    async def test_active_poll_reads_behind_head(self):
        chain = FakeChainReader(head=100, end_block=150, pending={VOTER_E: 42})
        indexer = FakeIndexer(votes=[vote(VOTER_E, "No")], tally=ReportedTally(yes="0", no="42"))

        report = await PollAuditor(chain, indexer, POLL).run()

        assert report.window.is_active is True
        assert indexer.requests == [(POLL, 90)]
        assert chain.blocks_read() == {90}
        assert report.matches is True

    @pytest.mark.asyncio
    async def test_overridden_delegate_that_did_not_vote(self):
        chain = FakeChainReader(
            delegates={DELEGATE_B},
            delegations={DELEGATOR_C: DELEGATE_B},
            delegated={DELEGATE_B: 9000},
            pending={DELEGATOR_C: 250},
        )
        indexer = FakeIndexer(votes=[vote(DELEGATOR_C, "Yes")], tally=ReportedTally(yes="250", no="0"))

        report = await PollAuditor(chain, indexer, POLL, LookupRunner(concurrency=4)).run()

        assert report.matches is True

    @pytest.mark.asyncio
    async def test_indexer_failure_is_lookup_failure(self):
        auditor = PollAuditor(FakeChainReader(), FakeIndexer(fail=True), POLL)

        with pytest.raises(LookupFailure) as exc_info:
            await auditor.run()

        assert exc_info.value.details["operation"] == "indexerPoll"

    @pytest.mark.asyncio
    async def test_chain_head_failure_is_lookup_failure(self):
        auditor = PollAuditor(FakeChainReader(fail_on={"current_block_height"}), FakeIndexer(), POLL)

        with pytest.raises(LookupFailure):
            await auditor.run()

    @pytest.mark.asyncio
    async def test_override_exceeding_delegate_stake_is_integrity_fault(self):
        chain = FakeChainReader(
            delegates={DELEGATE_A},
            delegations={DELEGATOR_C: DELEGATE_A},
            delegated={DELEGATE_A: 100},
            pending={DELEGATOR_C: 150},
        )
        indexer = FakeIndexer(votes=[vote(DELEGATE_A, "Yes"), vote(DELEGATOR_C, "No")])

        with pytest.raises(DataIntegrityError):
            await PollAuditor(chain, indexer, POLL).run()

    def test_rejects_malformed_poll_address(self):
        with pytest.raises(DataIntegrityError):
            PollAuditor(FakeChainReader(), FakeIndexer(), "0xnotapoll")
