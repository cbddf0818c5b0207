"""Tests for the Gripp fetch helpers."""

import json
from datetime import date

import pytest
import respx

from conftest import GRIPP_URL, gripp_page
from services.gripp import (
    build_invoice_filters,
    fetch_absence_requests,
    fetch_contracts,
    fetch_hours,
    fetch_overdue_invoices,
    fetch_projects,
    is_overdue,
)


def sent_params(route, index=0):
    return json.loads(route.calls[index].request.content)[0]["params"]


class TestInvoiceFilters:
    def test_adds_default_date_filter(self):
        filters = build_invoice_filters([], since="2024-01-01")
        assert filters == [
            {"field": "invoice.date", "operator": "greaterequals", "value": "2024-01-01"}
        ]

    def test_keeps_explicit_date_filter(self):
        filters = build_invoice_filters(
            [{"field": "invoice.date", "operator": "greaterequals", "value": "2025-01-01"}]
        )
        assert len(filters) == 1
        assert filters[0]["value"] == "2025-01-01"

    def test_maps_operator_aliases(self):
        filters = build_invoice_filters(
            [
                {"field": "invoice.date", "operator": "after", "value": "2025-01-01"},
                {"field": "invoice.expirydate", "operator": "before", "value": "2025-06-01"},
                {"field": "invoice.company", "operator": "equals", "value": 7},
            ]
        )
        assert [f["operator"] for f in filters] == ["greaterequals", "less", "equals"]

    def test_does_not_mutate_input(self):
        original = [{"field": "invoice.date", "operator": "after", "value": "2025-01-01"}]
        build_invoice_filters(original)
        assert original[0]["operator"] == "after"


class TestOverdue:
    today = date(2025, 5, 1)

    def invoice(self, total="121.00", paid="0.00", expiry="2025-04-01 00:00:00.000000"):
        return {
            "id": 1,
            "totalinclvat": total,
            "totalpayed": paid,
            "expirydate": {"date": expiry, "timezone_type": 3, "timezone": "Europe/Amsterdam"},
        }

    def test_unpaid_past_expiry(self):
        assert is_overdue(self.invoice(), self.today)

    def test_paid_in_full(self):
        assert not is_overdue(self.invoice(paid="121.00"), self.today)

    def test_rounding_difference_is_paid(self):
        assert not is_overdue(self.invoice(paid="120.995"), self.today)

    def test_not_yet_expired(self):
        assert not is_overdue(self.invoice(expiry="2025-05-01 00:00:00.000000"), self.today)

    def test_missing_expiry(self):
        invoice = self.invoice()
        invoice["expirydate"] = None
        assert not is_overdue(invoice, self.today)

    @pytest.mark.asyncio
    async def test_fetch_overdue_invoices(self, gripp_client):
        rows = [self.invoice(), {**self.invoice(paid="121.00"), "id": 2}]
        async with respx.mock() as respx_mock:
            route = respx_mock.post(GRIPP_URL).mock(return_value=gripp_page(rows))

            overdue = await fetch_overdue_invoices(gripp_client, today=self.today)

        assert [invoice["id"] for invoice in overdue] == [1]
        filters = sent_params(route)[0]
        assert {"field": "invoice.date", "operator": "greaterequals", "value": "2024-01-01"} in filters


class TestAbsences:
    @pytest.mark.asyncio
    async def test_start_after_end_rejected(self, gripp_client):
        with pytest.raises(ValueError):
            await fetch_absence_requests(gripp_client, [1], date(2025, 2, 1), date(2025, 1, 1))

    @pytest.mark.asyncio
    async def test_no_employees_makes_no_request(self, gripp_client):
        async with respx.mock(assert_all_called=False) as respx_mock:
            route = respx_mock.post(GRIPP_URL).mock(return_value=gripp_page([]))

            result = await fetch_absence_requests(
                gripp_client, [], date(2025, 1, 1), date(2025, 1, 31)
            )

        assert result == []
        assert route.call_count == 0

    @pytest.mark.asyncio
    async def test_filters_approved_in_range(self, gripp_client):
        async with respx.mock() as respx_mock:
            route = respx_mock.post(GRIPP_URL).mock(return_value=gripp_page([{"id": 9}]))

            result = await fetch_absence_requests(
                gripp_client, [1, 2], date(2025, 1, 1), date(2025, 1, 31)
            )

        assert result == [{"id": 9}]
        filters = {f["field"]: f for f in sent_params(route)[0]}
        assert filters["absencerequest.employee"]["value"] == [1, 2]
        assert filters["absencerequest.startdate"]["value"] == "2025-01-31"
        assert filters["absencerequest.enddate"]["value"] == "2025-01-01"
        assert filters["absencerequest.status"]["value"] == 2


class TestContractsAndHours:
    @pytest.mark.asyncio
    async def test_hours_range_rejected(self, gripp_client):
        with pytest.raises(ValueError):
            await fetch_hours(gripp_client, [1], date(2025, 2, 1), date(2025, 1, 1))

    @pytest.mark.asyncio
    async def test_no_employees_makes_no_request(self, gripp_client):
        async with respx.mock(assert_all_called=False) as respx_mock:
            route = respx_mock.post(GRIPP_URL).mock(return_value=gripp_page([]))

            assert await fetch_contracts(gripp_client, []) == []
            assert await fetch_hours(gripp_client, [], date(2025, 1, 1), date(2025, 1, 31)) == []

        assert route.call_count == 0

    @pytest.mark.asyncio
    async def test_contracts_for_employees(self, gripp_client):
        async with respx.mock() as respx_mock:
            route = respx_mock.post(GRIPP_URL).mock(return_value=gripp_page([{"id": 4}]))

            contracts = await fetch_contracts(gripp_client, [1, 2])

        assert contracts == [{"id": 4}]
        filters, options = sent_params(route)
        assert filters == [{"field": "contract.employee", "operator": "in", "value": [1, 2]}]
        assert options["orderings"] == [{"field": "contract.startdate", "direction": "asc"}]


@pytest.mark.asyncio
async def test_fetch_projects_excludes_archived(gripp_client):
    async with respx.mock() as respx_mock:
        route = respx_mock.post(GRIPP_URL).mock(return_value=gripp_page([{"id": 101}]))

        projects = await fetch_projects(gripp_client)

    assert projects == [{"id": 101}]
    filters, options = sent_params(route)
    assert filters == [{"field": "project.archived", "operator": "equals", "value": False}]
    assert "project.projectlines.amountwritten" in options["fields"]
    assert options["orderings"] == [{"field": "project.updatedon", "direction": "desc"}]
