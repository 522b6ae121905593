from datetime import date

import pytest

from sgi_gps.services import billing


TODAY = date(2025, 3, 10)


def test_payment_extends_from_current_expiration_when_later():
    unit = {'tipoContrato': 'sin_contrato', 'costoMensual': 20, 'fechaVencimiento': '2025-04-15'}
    updates, amount = billing.apply_payment(unit, date(2025, 3, 1), 2)

    assert updates['fechaVencimiento'] == '2025-06-15'
    assert updates['fechaSiguientePago'] == '2025-07-15'
    assert updates['ultimoPago'] == '2025-03-01'
    assert amount == 40
    assert 'saldoContrato' not in updates


def test_payment_extends_from_payment_date_when_expired():
    unit = {'tipoContrato': 'sin_contrato', 'costoMensual': 20, 'fechaVencimiento': '2025-01-05'}
    updates, _ = billing.apply_payment(unit, date(2025, 3, 1), 1)

    assert updates['fechaVencimiento'] == '2025-04-01'
    assert updates['fechaSiguientePago'] == '2025-05-01'


def test_payment_without_expiration_uses_payment_date():
    updates, _ = billing.apply_payment({'costoMensual': 10}, date(2025, 1, 31), 1)
    # Fin de mes se ajusta
    assert updates['fechaVencimiento'] == '2025-02-28'
    assert updates['fechaSiguientePago'] == '2025-03-28'


def test_contract_payment_decrements_balance():
    unit = {
        'tipoContrato': 'con_contrato',
        'costoTotalContrato': 360,
        'mesesContrato': 12,
        'saldoContrato': 300,
    }
    updates, amount = billing.apply_payment(unit, date(2025, 3, 1), 3)
    assert amount == 90
    assert updates['saldoContrato'] == 210


def test_contract_balance_defaults_to_total_cost():
    unit = {'tipoContrato': 'con_contrato', 'costoTotalContrato': 120, 'mesesContrato': 12}
    updates, _ = billing.apply_payment(unit, date(2025, 3, 1), 1)
    assert updates['saldoContrato'] == 110


def test_revert_payment_restores_dates_and_balance():
    unit = {
        'tipoContrato': 'con_contrato',
        'costoTotalContrato': 360,
        'mesesContrato': 12,
        'saldoContrato': 210,
        'fechaVencimiento': '2025-06-01',
        'fechaSiguientePago': '2025-07-01',
    }
    updates = billing.revert_payment(unit, 3)
    assert updates == {
        'fechaSiguientePago': '2025-04-01',
        'fechaVencimiento': '2025-03-01',
        'saldoContrato': 300,
    }


def test_revert_payment_without_next_date_fails():
    with pytest.raises(ValueError):
        billing.revert_payment({'fechaVencimiento': '2025-06-01'}, 1)


def test_monthly_cost_by_contract_type():
    assert billing.monthly_cost({'costoMensual': '17.5'}) == 17.5
    assert billing.monthly_cost({'tipoContrato': 'con_contrato', 'costoTotalContrato': 240, 'mesesContrato': 12}) == 20
    assert billing.monthly_cost({'tipoContrato': 'con_contrato', 'costoTotalContrato': 50}) == 50
    assert billing.monthly_cost(None) == 0


@pytest.mark.parametrize('next_payment, expected', [
    ('2025-03-09', billing.STATUS_OVERDUE),
    ('2025-03-10', billing.STATUS_DUE_TODAY),
    ('2025-03-13', billing.STATUS_DUE_SOON),
    ('2025-03-17', billing.STATUS_DUE_SOON),
    ('2025-03-18', billing.STATUS_CURRENT),
])
def test_payment_status(next_payment, expected):
    assert billing.payment_status({'fechaSiguientePago': next_payment}, TODAY) == expected


def test_payment_status_suspended_and_missing_date():
    assert billing.payment_status({'estaSuspendido': True, 'fechaSiguientePago': '2020-01-01'}, TODAY) == 'suspended'
    assert billing.payment_status({}, TODAY) == 'no_date'


@pytest.mark.parametrize('next_payment, expected', [
    ('2025-03-13', 'payment_reminder'),
    ('2025-03-10', 'payment_due_today'),
    ('2025-03-07', 'payment_overdue'),
    ('2025-03-12', None),
    ('2025-03-06', None),
])
def test_reminder_bucket_exact_days(next_payment, expected):
    assert billing.reminder_bucket({'fechaSiguientePago': next_payment}, TODAY) == expected


def test_reminder_bucket_skips_suspended():
    assert billing.reminder_bucket({'fechaSiguientePago': '2025-03-10', 'estaSuspendido': True}, TODAY) is None


def test_overdue_amount_counts_started_months():
    unit = {'costoMensual': 10, 'fechaSiguientePago': '2025-03-01'}
    assert billing.overdue_amount(unit, date(2025, 2, 28)) == 0
    assert billing.overdue_amount(unit, date(2025, 3, 1)) == 10
    assert billing.overdue_amount(unit, date(2025, 3, 31)) == 20
    assert billing.amount_to_pay(unit, date(2025, 2, 1)) == 10


def test_cutoff_date_adds_grace_days():
    assert billing.cutoff_date({'fechaSiguientePago': '2025-03-10', 'diasCorte': 5}) == date(2025, 3, 15)
    assert billing.cutoff_date({'fechaSiguientePago': '2025-03-10'}) is None


def test_format_date_and_currency():
    assert billing.format_date('2025-01-05') == '05 ENE 2025'
    assert billing.format_date('2025-12-31T05:00:00Z') == '31 DIC 2025'
    assert billing.format_date(None) == '[Fecha no disponible]'
    assert billing.format_date('no es fecha') == '[Fecha inválida]'
    assert billing.format_currency(1234.5) == '$1,234.50'
