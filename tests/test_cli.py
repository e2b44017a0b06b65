"""Tests for CLI module."""

import json
import xml.etree.ElementTree as ET

import pytest

from invoice_tax_engine import __version__
from invoice_tax_engine.cli import main
from invoice_tax_engine.config import get_settings

WORKLOAD = {
    "profile": {
        "name": "Jan Kowalski Uslugi IT",
        "tax_id": "5260250274",
        "tax_regime": "flat",
        "tax_office_code": "1471",
    },
    "invoices": [
        {
            "number": "FV/2024/02/1",
            "issue_date": "2024-02-05",
            "buyer": {"name": "Klient", "tax_id": "1234563218"},
            "items": [{"quantity": 1, "unit_price": "1000.00", "vat_rate": "zw"}],
        },
        {
            "number": "FV/2024/02/2",
            "issue_date": "2024-02-20",
            "items": [{"quantity": 1, "unit_price": "500.00", "vat_rate": "zw"}],
        },
    ],
    "expenses": [
        {
            "number": "K/1",
            "issue_date": "2024-02-10",
            "supplier": {"name": "Sklep", "tax_id": "5260250274"},
            "items": [{"quantity": 1, "unit_price": "300.00", "vat_rate": "zw"}],
        }
    ],
}


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """Keep the CLI on default settings regardless of the developer's environment."""
    for name in ("ITE_DEFAULT_TAX_OFFICE_CODE", "ITE_LOCAL_CURRENCY", "ITE_FLAT_TAX_RATE"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def workload_file(tmp_path):
    path = tmp_path / "workload.json"
    path.write_text(json.dumps(WORKLOAD), encoding="utf-8")
    return path


class TestMain:
    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0

        assert "usage: ite" in capsys.readouterr().out

    def test_version(self, capsys):
        assert main(["version"]) == 0

        assert capsys.readouterr().out.strip() == f"invoice-tax-engine {__version__}"


class TestItemCommand:
    def test_prints_values(self, capsys):
        assert main(["item", "2", "100.00", "23"]) == 0

        out = capsys.readouterr().out
        assert "Net:   200.00" in out
        assert "VAT:   46.00" in out
        assert "Gross: 246.00" in out

    def test_exempt_item(self, capsys):
        assert main(["item", "1", "999.99", "zw"]) == 0

        assert "VAT:   0.00" in capsys.readouterr().out

    def test_invalid_rate(self, capsys):
        assert main(["item", "1", "10", "7"]) == 1

        assert "Unsupported VAT rate" in capsys.readouterr().out

    def test_negative_quantity(self, capsys):
        assert main(["item", "-1", "10", "23"]) == 1

        assert "must not be negative" in capsys.readouterr().out


class TestRateCommand:
    def test_local_currency(self, capsys):
        assert main(["rate", "PLN", "2024-03-15"]) == 0

        out = capsys.readouterr().out
        assert "PLN/PLN: 1" in out
        assert "Rate date: 2024-03-15" in out

    def test_manual_rate(self, capsys):
        assert main(["rate", "EUR", "2024-03-15", "--manual", "4.30"]) == 0

        out = capsys.readouterr().out
        assert "EUR/PLN: 4.30" in out
        assert "Rate date: 2024-03-14" in out
        assert "Source: manual" in out

    def test_bad_date(self, capsys):
        assert main(["rate", "EUR", "15.03.2024"]) == 1

        assert "Error:" in capsys.readouterr().out


class TestTaxCommand:
    def test_flat(self, capsys):
        assert main(["tax", "1200", "--regime", "flat"]) == 0

        assert "Estimated tax (flat): 228.00" in capsys.readouterr().out

    def test_lump_sum_without_rate(self, capsys):
        assert main(["tax", "1200", "--regime", "lump_sum"]) == 1

        assert "lump-sum rate" in capsys.readouterr().out

    def test_tax_card(self, capsys):
        assert main(["tax", "0", "--regime", "tax_card", "--tax-card-amount", "300"]) == 0

        assert "Estimated tax (tax_card): 300.00" in capsys.readouterr().out


class TestPeriodsCommand:
    def test_json_output(self, workload_file, capsys):
        assert main(["periods", str(workload_file), "--as-of", "2024-02-29", "--json"]) == 0

        rows = json.loads(capsys.readouterr().out)
        assert rows == [
            {
                "period": "2024-02",
                "total_income": "1500.00",
                "total_expenses": "300.00",
                "estimated_tax": "228.00",
                "deadline_date": "2024-03-20",
                "status": "not_due",
                "obligations": [
                    {"kind": "income_tax", "deadline_date": "2024-03-20", "status": "not_due"},
                    {"kind": "jpk_v7m", "deadline_date": "2024-03-25", "status": "not_due"},
                ],
            }
        ]

    def test_table_output(self, workload_file, capsys):
        assert main(["periods", str(workload_file), "--as-of", "2024-03-14"]) == 0

        out = capsys.readouterr().out
        assert "2024-02" in out
        assert "228.00" in out
        assert "due_soon" in out

    def test_missing_profile(self, tmp_path, capsys):
        path = tmp_path / "empty.json"
        path.write_text("{}", encoding="utf-8")

        assert main(["periods", str(path), "--as-of", "2024-02-29"]) == 1

        assert "No business profile selected" in capsys.readouterr().out

    def test_missing_file(self, tmp_path, capsys):
        assert main(["periods", str(tmp_path / "nope.json")]) == 1

        assert "Error:" in capsys.readouterr().out


class TestJpkCommand:
    def test_writes_file(self, workload_file, tmp_path, capsys):
        out_dir = tmp_path / "out"

        assert main(["jpk", str(workload_file), "--period", "2024-02", "--output-dir", str(out_dir)]) == 0

        target = out_dir / "JPK_V7_5260250274_2024-02.xml"
        assert target.exists()
        assert f"Wrote {target}" in capsys.readouterr().out
        root = ET.fromstring(target.read_bytes())
        assert root.tag.endswith("}JPK")

    def test_correction(self, workload_file, tmp_path):
        assert main(
            ["jpk", str(workload_file), "--period", "2024-02", "--output-dir", str(tmp_path), "--correction"]
        ) == 0

        payload = (tmp_path / "JPK_V7_5260250274_2024-02.xml").read_text(encoding="utf-8")
        assert 'poz="P_7">2</' in payload

    def test_missing_profile(self, tmp_path, capsys):
        path = tmp_path / "empty.json"
        path.write_text("{}", encoding="utf-8")

        assert main(["jpk", str(path), "--period", "2024-02", "--output-dir", str(tmp_path)]) == 1

        assert "No business profile selected" in capsys.readouterr().out
        assert list(tmp_path.glob("*.xml")) == []

    def test_invalid_period(self, workload_file, tmp_path, capsys):
        assert main(["jpk", str(workload_file), "--period", "2024-13", "--output-dir", str(tmp_path)]) == 1

        assert "Invalid period" in capsys.readouterr().out

    def test_incomplete_profile(self, tmp_path, capsys):
        workload = {**WORKLOAD, "profile": {**WORKLOAD["profile"], "tax_office_code": None}}
        path = tmp_path / "workload.json"
        path.write_text(json.dumps(workload), encoding="utf-8")

        assert main(["jpk", str(path), "--period", "2024-02", "--output-dir", str(tmp_path)]) == 1

        assert "tax office code" in capsys.readouterr().out
