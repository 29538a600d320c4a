"""
Event Ledger - Event Handler Tests

Unit tests for the per-event-type handlers. Handlers are pure, so these
run against unattached events without a database.
"""

import pytest
from datetime import date
from decimal import Decimal

from event_ledger.models.accounting_event import AccountingEventType
from event_ledger.models.journal import EntryType
from event_ledger.services.event_handlers import EVENT_HANDLERS, get_handler
from event_ledger.services.event_handlers.base import DEFAULT_ACCOUNTS


def _accounts(spec, entry_type):
    return [(line.account_code, line.amount) for line in spec.lines if line.entry_type == entry_type]


class TestHandlerRegistry:
    """Test cases for the handler registry."""

    def test_every_event_type_has_a_handler(self):
        """Test that the registry covers the closed set of event types."""
        assert set(EVENT_HANDLERS) == set(AccountingEventType)
        for event_type, handler in EVENT_HANDLERS.items():
            assert handler.event_type == event_type

    def test_get_handler(self):
        """Test handler lookup by event type."""
        handler = get_handler(AccountingEventType.PARTNER_PAYMENT)
        assert handler is EVENT_HANDLERS[AccountingEventType.PARTNER_PAYMENT]


class TestExpenseApprovedHandler:
    """Test cases for EXPENSE_APPROVED."""

    handler = EVENT_HANDLERS[AccountingEventType.EXPENSE_APPROVED]

    def test_valid_payload(self, expense_approved_data):
        """Test that a consistent expense passes validation."""
        assert self.handler.validate(expense_approved_data).valid

    def test_line_items_must_sum_to_subtotal(self, expense_approved_data):
        """Test the subtotal cross-check."""
        expense_approved_data["totalSubtotal"] = "900.00"
        expense_approved_data["totalAmount"] = "975.00"

        result = self.handler.validate(expense_approved_data)

        assert not result.valid
        assert "Line items do not sum to subtotal" in result.error

    def test_totals_must_add_up(self, expense_approved_data):
        """Test subtotal + VAT = total."""
        expense_approved_data["totalAmount"] = "1100.00"

        result = self.handler.validate(expense_approved_data)

        assert not result.valid
        assert "Expense totals do not add up" in result.error

    def test_missing_line_items(self, expense_approved_data):
        """Test that an empty payload is rejected with a field message."""
        del expense_approved_data["lineItems"]

        result = self.handler.validate(expense_approved_data)

        assert not result.valid
        assert result.error.startswith("Invalid event data")
        assert "lineItems" in result.error

    def test_generates_balanced_accrual(self, make_event, expense_approved_data, company_a):
        """Test Dr expense + Dr VAT / Cr payable."""
        event = make_event(AccountingEventType.EXPENSE_APPROVED, expense_approved_data, [company_a])

        specs = self.handler.generate_journals(event)

        assert len(specs) == 1
        spec = specs[0]
        assert spec.company_id == company_a
        assert _accounts(spec, EntryType.DEBIT) == [
            ("6100", Decimal("1000.00")),
            (DEFAULT_ACCOUNTS["VAT_RECEIVABLE"], Decimal("75.00")),
        ]
        assert _accounts(spec, EntryType.CREDIT) == [("2050", Decimal("1075.00"))]
        assert spec.total_debit == spec.total_credit == Decimal("1075.00")

    def test_unset_accounts_left_for_resolver(self, make_event, company_a):
        """Test that lines without an account code stay unresolved."""
        data = {
            "lineItems": [{"amount": "1000"}],
            "totalSubtotal": "1000",
            "totalAmount": "1000",
        }
        event = make_event(AccountingEventType.EXPENSE_APPROVED, data, [company_a])

        spec = self.handler.generate_journals(event)[0]

        assert spec.has_unresolved_accounts
        assert [line.account_code for line in spec.lines] == [None, None]

    def test_entry_date_defaults_to_event_date(self, make_event, expense_approved_data, company_a):
        """Test the journal date when the payload has no expense date."""
        event = make_event(
            AccountingEventType.EXPENSE_APPROVED, expense_approved_data, [company_a],
            event_date=date(2026, 2, 14),
        )

        spec = self.handler.generate_journals(event)[0]

        assert spec.entry_date == date(2026, 2, 14)


class TestExpensePaidHandler:
    """Test cases for EXPENSE_PAID."""

    handler = EVENT_HANDLERS[AccountingEventType.EXPENSE_PAID]

    def _data(self, **overrides):
        data = {
            "expenseId": "exp-1",
            "paymentDate": "2026-04-02",
            "paymentAmount": "500.00",
            "bankAccountGlCode": "1010",
            "vendorName": "Acme",
        }
        data.update(overrides)
        return data

    def test_paid_by_owner(self, make_event, company_a):
        """Test Dr payable / Cr bank in the owning company."""
        event = make_event(AccountingEventType.EXPENSE_PAID, self._data(), [company_a])

        specs = self.handler.generate_journals(event)

        assert len(specs) == 1
        assert _accounts(specs[0], EntryType.DEBIT) == [("2050", Decimal("500.00"))]
        assert _accounts(specs[0], EntryType.CREDIT) == [("1010", Decimal("500.00"))]

    def test_paid_by_related_company(self, make_event, company_a, company_b):
        """Test the intercompany pair when another company paid."""
        data = self._data(payingCompanyId=str(company_b), payingCompanyName="HoldCo")
        event = make_event(AccountingEventType.EXPENSE_PAID, data, [company_a, company_b])

        specs = self.handler.generate_journals(event)

        assert [spec.company_id for spec in specs] == [company_b, company_a]
        payer, owner = specs
        assert _accounts(payer, EntryType.DEBIT) == [("1180", Decimal("500.00"))]
        assert _accounts(payer, EntryType.CREDIT) == [("1010", Decimal("500.00"))]
        assert _accounts(owner, EntryType.DEBIT) == [("2050", Decimal("500.00"))]
        assert _accounts(owner, EntryType.CREDIT) == [("2700", Decimal("500.00"))]

    def test_rejects_zero_payment(self):
        """Test that the payment amount must be positive."""
        result = self.handler.validate(self._data(paymentAmount="0"))
        assert not result.valid


class TestCapexIncurredHandler:
    """Test cases for CAPEX_INCURRED."""

    handler = EVENT_HANDLERS[AccountingEventType.CAPEX_INCURRED]

    def _data(self, payment_method, **overrides):
        data = {
            "assetDescription": "Delivery van",
            "assetAccountCode": "1500",
            "acquisitionDate": "2026-05-01",
            "acquisitionCost": "30000.00",
            "paymentMethod": payment_method,
        }
        data.update(overrides)
        return data

    @pytest.mark.parametrize("method,expected", [
        ("cash", "1000"),
        ("payable", "2050"),
    ])
    def test_credit_account_by_payment_method(self, make_event, company_a, method, expected):
        """Test the credit side for cash and payable acquisitions."""
        event = make_event(AccountingEventType.CAPEX_INCURRED, self._data(method), [company_a])

        spec = self.handler.generate_journals(event)[0]

        assert _accounts(spec, EntryType.DEBIT) == [("1500", Decimal("30000.00"))]
        assert _accounts(spec, EntryType.CREDIT) == [(expected, Decimal("30000.00"))]

    def test_bank_payment_requires_gl_code(self):
        """Test that a bank acquisition needs the bank GL code."""
        result = self.handler.validate(self._data("bank"))

        assert not result.valid
        assert result.error == "Missing bank account GL code for bank payment"

    def test_bank_payment(self, make_event, company_a):
        event = make_event(
            AccountingEventType.CAPEX_INCURRED,
            self._data("bank", bankAccountGlCode="1012"),
            [company_a],
        )
        spec = self.handler.generate_journals(event)[0]
        assert _accounts(spec, EntryType.CREDIT) == [("1012", Decimal("30000.00"))]


class TestReceiptReceivedHandler:
    """Test cases for RECEIPT_RECEIVED."""

    handler = EVENT_HANDLERS[AccountingEventType.RECEIPT_RECEIVED]

    def test_receipt_with_vat(self, make_event, company_a):
        """Test Dr bank / Cr revenue + Cr VAT payable."""
        data = {
            "receiptId": "r-1",
            "receiptNumber": "RCT-001",
            "clientName": "Globex",
            "receiptDate": "2026-04-10",
            "lineItems": [{"description": "Consulting", "accountCode": "4100", "amount": "2000.00"}],
            "payments": [{"amount": "2150.00", "bankAccountGlCode": "1010"}],
            "totalVatAmount": "150.00",
            "totalAmount": "2150.00",
        }
        event = make_event(AccountingEventType.RECEIPT_RECEIVED, data, [company_a])

        spec = self.handler.generate_journals(event)[0]

        assert _accounts(spec, EntryType.DEBIT) == [("1010", Decimal("2150.00"))]
        assert _accounts(spec, EntryType.CREDIT) == [
            ("4100", Decimal("2000.00")),
            ("2200", Decimal("150.00")),
        ]
        assert spec.description == "Receipt - RCT-001 - Globex"

    def test_payment_without_bank_goes_to_cash(self, make_event, company_a):
        """Test the cash fallback and an unresolved revenue line."""
        data = {
            "receiptId": "r-2",
            "receiptNumber": "RCT-002",
            "receiptDate": "2026-04-11",
            "lineItems": [{"description": "Walk-in sale", "amount": "80.00"}],
            "payments": [{"amount": "80.00"}],
            "totalAmount": "80.00",
        }
        event = make_event(AccountingEventType.RECEIPT_RECEIVED, data, [company_a])

        spec = self.handler.generate_journals(event)[0]

        assert _accounts(spec, EntryType.DEBIT) == [(DEFAULT_ACCOUNTS["CASH"], Decimal("80.00"))]
        assert _accounts(spec, EntryType.CREDIT) == [(None, Decimal("80.00"))]


class TestProjectServiceCompletedHandler:
    """Test cases for PROJECT_SERVICE_COMPLETED."""

    handler = EVENT_HANDLERS[AccountingEventType.PROJECT_SERVICE_COMPLETED]

    def test_recognizes_deferred_revenue(self, make_event, company_a):
        data = {
            "projectId": "PRJ-9",
            "projectName": "Data migration",
            "completionDate": "2026-06-30",
            "revenueAccountCode": "4200",
            "amount": "12000.00",
        }
        event = make_event(AccountingEventType.PROJECT_SERVICE_COMPLETED, data, [company_a])

        spec = self.handler.generate_journals(event)[0]

        assert _accounts(spec, EntryType.DEBIT) == [("2300", Decimal("12000.00"))]
        assert _accounts(spec, EntryType.CREDIT) == [("4200", Decimal("12000.00"))]


class TestManagementFeeHandler:
    """Test cases for MANAGEMENT_FEE_RECOGNIZED."""

    handler = EVENT_HANDLERS[AccountingEventType.MANAGEMENT_FEE_RECOGNIZED]

    def test_two_company_journals(self, make_event, management_fee_data, company_a, company_b):
        """Test expense in the project company and income in the management company."""
        event = make_event(
            AccountingEventType.MANAGEMENT_FEE_RECOGNIZED, management_fee_data, [company_a, company_b]
        )

        project_spec, management_spec = self.handler.generate_journals(event)

        assert project_spec.company_id == company_a
        assert _accounts(project_spec, EntryType.DEBIT) == [("6800", Decimal("2500.00"))]
        assert _accounts(project_spec, EntryType.CREDIT) == [("2700", Decimal("2500.00"))]
        assert management_spec.company_id == company_b
        assert _accounts(management_spec, EntryType.DEBIT) == [("1180", Decimal("2500.00"))]
        assert _accounts(management_spec, EntryType.CREDIT) == [("4800", Decimal("2500.00"))]
        assert project_spec.entry_date == event.event_date

    def test_same_company_rejected(self, management_fee_data, company_a):
        management_fee_data["managementCompanyId"] = str(company_a)

        result = self.handler.validate(management_fee_data)

        assert result.error == "Project company and management company cannot be the same"

    @pytest.mark.parametrize("fee_amount", ["0", "-10"])
    def test_invalid_fee_amount(self, management_fee_data, fee_amount):
        """Test that zero or negative fees fail validation."""
        management_fee_data["feeAmount"] = fee_amount

        result = self.handler.validate(management_fee_data)

        assert not result.valid
        assert result.error == "Invalid fee amount"


class TestIntercompanySettlementHandler:
    """Test cases for INTERCOMPANY_SETTLEMENT."""

    handler = EVENT_HANDLERS[AccountingEventType.INTERCOMPANY_SETTLEMENT]

    def _data(self, from_company, to_company, amount="5000.00"):
        return {
            "fromCompanyId": str(from_company),
            "toCompanyId": str(to_company),
            "settlementDate": "2026-07-15",
            "settlementAmount": amount,
            "fromBankGlCode": "1010",
            "toBankGlCode": "1011",
            "reference": "SET-7",
        }

    def test_settlement_pair(self, make_event, company_a, company_b):
        event = make_event(
            AccountingEventType.INTERCOMPANY_SETTLEMENT, self._data(company_a, company_b),
            [company_a, company_b],
        )

        payer, receiver = self.handler.generate_journals(event)

        assert _accounts(payer, EntryType.DEBIT) == [("2700", Decimal("5000.00"))]
        assert _accounts(payer, EntryType.CREDIT) == [("1010", Decimal("5000.00"))]
        assert _accounts(receiver, EntryType.DEBIT) == [("1011", Decimal("5000.00"))]
        assert _accounts(receiver, EntryType.CREDIT) == [("1180", Decimal("5000.00"))]
        assert payer.description.endswith("Ref: SET-7")

    def test_same_company_rejected(self, company_a):
        result = self.handler.validate(self._data(company_a, company_a))
        assert result.error == "From and To companies cannot be the same"

    def test_non_positive_amount_rejected(self, company_a, company_b):
        result = self.handler.validate(self._data(company_a, company_b, amount="0"))
        assert result.error == "Invalid settlement amount"


class TestPartnerHandlers:
    """Test cases for PARTNER_PROFIT_ALLOCATION and PARTNER_PAYMENT."""

    allocation_handler = EVENT_HANDLERS[AccountingEventType.PARTNER_PROFIT_ALLOCATION]
    payment_handler = EVENT_HANDLERS[AccountingEventType.PARTNER_PAYMENT]

    def _allocation_data(self, total="10000.00"):
        return {
            "periodFrom": "2026-01-01",
            "periodTo": "2026-06-30",
            "projectId": "PRJ-1",
            "projectName": "Harbour Tower",
            "allocations": [
                {"participantId": "p1", "participantName": "Ada", "ownershipPercentage": "60", "allocatedAmount": "6000.00"},
                {"participantId": "p2", "participantName": "Bola", "ownershipPercentage": "40", "allocatedAmount": "4000.00"},
            ],
            "totalProfit": total,
        }

    def test_profit_allocation(self, make_event, company_a):
        event = make_event(AccountingEventType.PARTNER_PROFIT_ALLOCATION, self._allocation_data(), [company_a])

        spec = self.allocation_handler.generate_journals(event)[0]

        assert _accounts(spec, EntryType.DEBIT) == [("3200", Decimal("10000.00"))]
        assert _accounts(spec, EntryType.CREDIT) == [
            ("2750", Decimal("6000.00")),
            ("2750", Decimal("4000.00")),
        ]

    def test_allocations_must_sum_to_profit(self):
        result = self.allocation_handler.validate(self._allocation_data(total="12000.00"))
        assert result.error == "Allocations do not sum to total profit"

    def test_partner_payment(self, make_event, company_a):
        data = {
            "projectId": "PRJ-1",
            "participantId": "p1",
            "participantName": "Ada",
            "paymentDate": "2026-07-01",
            "paymentAmount": "6000.00",
            "bankAccountGlCode": "1010",
        }
        event = make_event(AccountingEventType.PARTNER_PAYMENT, data, [company_a])

        spec = self.payment_handler.generate_journals(event)[0]

        assert _accounts(spec, EntryType.DEBIT) == [("2750", Decimal("6000.00"))]
        assert _accounts(spec, EntryType.CREDIT) == [("1010", Decimal("6000.00"))]


class TestOpeningBalanceHandler:
    """Test cases for OPENING_BALANCE."""

    handler = EVENT_HANDLERS[AccountingEventType.OPENING_BALANCE]

    def test_opening_balances(self, make_event, company_a):
        data = {
            "fiscalYear": "2026",
            "balances": [
                {"accountCode": "1010", "accountName": "Main bank", "debitAmount": "15000.00"},
                {"accountCode": "3100", "creditAmount": "15000.00"},
            ],
        }
        event = make_event(AccountingEventType.OPENING_BALANCE, data, [company_a])

        spec = self.handler.generate_journals(event)[0]

        assert spec.description == "Opening balances - FY 2026"
        assert _accounts(spec, EntryType.DEBIT) == [("1010", Decimal("15000.00"))]
        assert _accounts(spec, EntryType.CREDIT) == [("3100", Decimal("15000.00"))]

    def test_row_without_amount(self):
        data = {"fiscalYear": "2026", "balances": [{"accountCode": "1010"}]}

        result = self.handler.validate(data)

        assert result.error == "No amount specified for account 1010"

    def test_unbalanced_opening_balances(self):
        """Test that the payload itself must balance."""
        data = {
            "fiscalYear": "2026",
            "balances": [
                {"accountCode": "1010", "debitAmount": "100.00"},
                {"accountCode": "3100", "creditAmount": "90.00"},
            ],
        }

        result = self.handler.validate(data)

        assert result.error == "Opening balances not balanced: Debits=100.00, Credits=90.00"


def test_primary_company_requires_affected_companies(make_event):
    """Test that single-company handlers refuse an event with no companies."""
    handler = EVENT_HANDLERS[AccountingEventType.PARTNER_PAYMENT]
    event = make_event(AccountingEventType.PARTNER_PAYMENT, {}, [])

    with pytest.raises(ValueError):
        handler.primary_company(event)
