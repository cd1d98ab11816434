"""
BettsTax Practice - Tax Authority Service Tests

The authority API is mocked with respx.
"""

import pytest
import httpx
import respx
from sqlalchemy import select

from app.models.tax_filing import FilingStatus, SubmissionStatus, TaxAuthoritySubmission
from app.services.tax_authority_service import NOT_CONFIGURED_MESSAGE, TaxAuthorityService
from app.services.tax_filing_service import TaxFilingService
from app.utils.error_handling import (
    AuthorizationException,
    InvalidStateTransitionException,
    NotFoundException,
    TaxAuthorityException,
)
from tests.factories import make_filing


BASE_URL = "https://nra.example.com"


def _service(db_session, **overrides) -> TaxAuthorityService:
    options = {"base_url": BASE_URL, "api_key": "test-key", "client_id": "practice-001"}
    options.update(overrides)
    return TaxAuthorityService(db_session, **options)


async def _submissions(db_session, filing_id):
    result = await db_session.execute(
        select(TaxAuthoritySubmission).where(TaxAuthoritySubmission.filing_id == filing_id)
    )
    return list(result.scalars().all())


@pytest.fixture
def nra_mock():
    with respx.mock(base_url=BASE_URL, assert_all_called=False) as mock:
        yield mock


class TestSubmitFiling:
    """Electronic submission of approved filings."""

    @pytest.mark.asyncio
    async def test_not_configured_is_non_fatal(self, db_session, admin_actor, test_client_record):
        filing = await make_filing(db_session, test_client_record, status=FilingStatus.APPROVED)
        service = _service(db_session, base_url="")

        result = await service.submit_filing(admin_actor, filing.id)

        assert result.submitted is False
        assert result.message == NOT_CONFIGURED_MESSAGE
        assert await _submissions(db_session, filing.id) == []

    @pytest.mark.asyncio
    async def test_accepted_submission_files_the_filing(
        self, db_session, admin_actor, test_client_record, nra_mock
    ):
        filing = await make_filing(db_session, test_client_record, status=FilingStatus.APPROVED)
        route = nra_mock.post("/api/submit").mock(
            return_value=httpx.Response(
                200, json={"success": True, "reference": "NRA-2024-0001", "message": "Received"}
            )
        )

        result = await _service(db_session).submit_filing(admin_actor, filing.id)

        assert result.submitted is True
        assert result.submission.status == SubmissionStatus.ACCEPTED
        assert result.submission.authority_reference == "NRA-2024-0001"

        request = route.calls.last.request
        assert request.headers["X-API-Key"] == "test-key"
        assert request.headers["X-Client-ID"] == "practice-001"

        reloaded = await TaxFilingService(db_session).get_filing(admin_actor, filing.id)
        assert reloaded.status == FilingStatus.FILED
        assert reloaded.filing_date is not None
        assert reloaded.version == 2

    @pytest.mark.asyncio
    async def test_rejected_submission(self, db_session, admin_actor, test_client_record, nra_mock):
        filing = await make_filing(db_session, test_client_record, status=FilingStatus.APPROVED)
        nra_mock.post("/api/submit").mock(
            return_value=httpx.Response(200, json={"success": False, "message": "TIN not registered"})
        )

        result = await _service(db_session).submit_filing(admin_actor, filing.id)

        assert result.submitted is False
        assert result.message == "TIN not registered"
        assert result.submission.status == SubmissionStatus.REJECTED

        reloaded = await TaxFilingService(db_session).get_filing(admin_actor, filing.id)
        assert reloaded.status == FilingStatus.APPROVED

    @pytest.mark.asyncio
    async def test_http_error_records_failed_attempt(
        self, db_session, admin_actor, test_client_record, nra_mock
    ):
        filing = await make_filing(db_session, test_client_record, status=FilingStatus.APPROVED)
        filing_id = filing.id
        nra_mock.post("/api/submit").mock(return_value=httpx.Response(503))

        with pytest.raises(TaxAuthorityException) as exc_info:
            await _service(db_session).submit_filing(admin_actor, filing_id)

        assert exc_info.value.status_code == 502
        submissions = await _submissions(db_session, filing_id)
        assert [s.status for s in submissions] == [SubmissionStatus.FAILED]

    @pytest.mark.asyncio
    async def test_only_approved_filings(self, db_session, admin_actor, draft_filing):
        with pytest.raises(InvalidStateTransitionException):
            await _service(db_session).submit_filing(admin_actor, draft_filing.id)

    @pytest.mark.asyncio
    async def test_admin_only(self, db_session, client_actor, test_client_record):
        filing = await make_filing(db_session, test_client_record, status=FilingStatus.APPROVED)

        with pytest.raises(AuthorizationException):
            await _service(db_session).submit_filing(client_actor, filing.id)


class TestCheckStatus:
    """Polling the authority for processing status."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "authority_status, expected",
        [("processed", SubmissionStatus.ACCEPTED), ("rejected", SubmissionStatus.REJECTED)],
    )
    async def test_status_mapping(
        self, db_session, admin_actor, test_client_record, nra_mock, authority_status, expected
    ):
        filing = await make_filing(db_session, test_client_record, status=FilingStatus.APPROVED)
        nra_mock.post("/api/submit").mock(
            return_value=httpx.Response(200, json={"success": True, "reference": "NRA-REF-9"})
        )
        nra_mock.get("/api/status/NRA-REF-9").mock(
            return_value=httpx.Response(200, json={"status": authority_status, "message": "Checked"})
        )
        service = _service(db_session)
        await service.submit_filing(admin_actor, filing.id)

        submission = await service.check_status(admin_actor, filing.id)

        assert submission.status == expected
        assert submission.last_checked_at is not None

    @pytest.mark.asyncio
    async def test_no_reference(self, db_session, admin_actor, test_client_record):
        filing = await make_filing(db_session, test_client_record, status=FilingStatus.APPROVED)

        with pytest.raises(NotFoundException):
            await _service(db_session).check_status(admin_actor, filing.id)


class TestValidateConfiguration:
    """Connectivity check."""

    @pytest.mark.asyncio
    async def test_healthy(self, db_session, nra_mock):
        nra_mock.get("/health").mock(return_value=httpx.Response(200, json={"status": "ok"}))

        assert await _service(db_session).validate_configuration() is True

    @pytest.mark.asyncio
    async def test_missing_api_key(self, db_session):
        assert await _service(db_session, api_key="").validate_configuration() is False

    @pytest.mark.asyncio
    async def test_unreachable(self, db_session, nra_mock):
        nra_mock.get("/health").mock(side_effect=httpx.ConnectError("connection refused"))

        assert await _service(db_session).validate_configuration() is False
