"""Tests for JPK_V7M XML rendering."""

import logging
import xml.etree.ElementTree as ET
from dataclasses import replace
from datetime import UTC, date, datetime
from decimal import Decimal

import pytest

from invoice_tax_engine.domain.documents import Counterparty
from invoice_tax_engine.domain.periods import PeriodKey
from invoice_tax_engine.domain.value_objects import DeclarationPurpose
from invoice_tax_engine.exceptions import IncompleteDeclarationError
from invoice_tax_engine.services.jpk_builder import JpkDeclarationBuilder
from invoice_tax_engine.services.jpk_serializer import (
    NS,
    NS_ETD,
    JpkXmlSerializer,
    file_name,
    format_amount,
)

from factories import make_expense, make_invoice

NSMAP = {"j": NS, "etd": NS_ETD}
MARCH = PeriodKey(2024, 3)


@pytest.fixture
def builder(settings) -> JpkDeclarationBuilder:
    return JpkDeclarationBuilder(
        clock=lambda: datetime(2024, 4, 2, 9, 30, 15, tzinfo=UTC), settings=settings
    )


@pytest.fixture
def serializer() -> JpkXmlSerializer:
    return JpkXmlSerializer()


@pytest.fixture
def declaration(builder, flat_profile):
    invoices = [
        make_invoice("FV/1", date(2024, 3, 4), ("2", "100.00", 23), ("1", "50.00", "zw")),
        make_invoice(
            "FV/2",
            date(2024, 3, 8),
            ("1", "200.00", 8),
            buyer=Counterparty(name="Jan Nowak"),
        ),
    ]
    expenses = [make_expense("K/1", date(2024, 3, 6), ("1", "100.00", 23))]
    return builder.build_declaration(MARCH, invoices, expenses, flat_profile)


def parse(xml: str) -> ET.Element:
    return ET.fromstring(xml)


def text(root: ET.Element, path: str) -> str | None:
    element = root.find(path, NSMAP)
    assert element is not None, f"{path} not found"
    return element.text


class TestFormatAmount:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (Decimal("0"), "0.00"),
            (Decimal("1234.5"), "1234.50"),
            (Decimal("0.005"), "0.01"),
            (Decimal("-12.3"), "-12.30"),
        ],
    )
    def test_two_decimals_with_dot(self, value, expected):
        assert format_amount(value) == expected


class TestDocumentStructure:
    def test_top_level_sections_in_order(self, serializer, declaration):
        root = parse(serializer.serialize(declaration))

        assert root.tag == f"{{{NS}}}JPK"
        assert [child.tag.split("}")[1] for child in root] == [
            "Naglowek",
            "Podmiot1",
            "Deklaracja",
            "Ewidencja",
        ]

    def test_header(self, serializer, declaration):
        root = parse(serializer.serialize(declaration))

        form = root.find("j:Naglowek/j:KodFormularza", NSMAP)
        assert form.text == "JPK_VAT"
        assert form.get("kodSystemowy") == "JPK_V7M (3)"
        assert form.get("wersjaSchemy") == "1-0E"
        assert text(root, "j:Naglowek/j:WariantFormularza") == "3"
        assert text(root, "j:Naglowek/j:DataWytworzeniaJPK") == "2024-04-02T09:30:15"
        assert text(root, "j:Naglowek/j:NazwaSystemu") == "invoice-tax-engine"
        assert text(root, "j:Naglowek/j:CelZlozenia") == "1"
        assert root.find("j:Naglowek/j:CelZlozenia", NSMAP).get("poz") == "P_7"
        assert text(root, "j:Naglowek/j:KodUrzedu") == "1471"
        assert text(root, "j:Naglowek/j:Rok") == "2024"
        assert text(root, "j:Naglowek/j:Miesiac") == "3"

    def test_correction_purpose(self, serializer, builder, flat_profile):
        declaration = builder.build_declaration(
            MARCH, [], [], flat_profile, DeclarationPurpose.CORRECTION
        )

        root = parse(serializer.serialize(declaration))

        assert text(root, "j:Naglowek/j:CelZlozenia") == "2"

    def test_subject(self, serializer, declaration):
        root = parse(serializer.serialize(declaration))

        podmiot = root.find("j:Podmiot1", NSMAP)
        assert podmiot.get("rola") == "Podatnik"
        assert text(podmiot, "j:OsobaNiefizyczna/etd:NIP") == "5260250274"
        assert text(podmiot, "j:OsobaNiefizyczna/etd:PelnaNazwa") == "Jan Kowalski Uslugi IT"
        assert text(podmiot, "j:OsobaNiefizyczna/j:Email") == "jan@example.com"
        assert podmiot.find("j:OsobaNiefizyczna/etd:REGON", NSMAP) is None

    def test_declaration_positions(self, serializer, declaration):
        root = parse(serializer.serialize(declaration))
        positions = "j:Deklaracja/j:PozycjeSzczegolowe/j:"

        assert text(root, "j:Deklaracja/j:Naglowek/j:KodFormularzaDekl") == "VAT-7"
        assert text(root, "j:Deklaracja/j:Naglowek/j:WariantFormularzaDekl") == "23"
        assert text(root, positions + "P_10") == "50.00"
        assert text(root, positions + "P_13_1") == "0.00"
        assert text(root, positions + "P_15") == "0.00"
        assert text(root, positions + "P_16") == "0.00"
        assert text(root, positions + "P_17") == "200.00"
        assert text(root, positions + "P_18") == "16.00"
        assert text(root, positions + "P_19") == "200.00"
        assert text(root, positions + "P_20") == "46.00"
        assert text(root, positions + "P_37") == "450.00"
        assert text(root, positions + "P_38") == "62.00"
        assert text(root, positions + "P_42") == "100.00"
        assert text(root, positions + "P_43") == "23.00"
        assert text(root, positions + "P_48") == "23.00"
        assert text(root, positions + "P_51") == "39.00"
        assert text(root, positions + "P_53") == "0.00"
        assert text(root, positions + "P_62") == "0.00"
        assert text(root, "j:Deklaracja/j:Pouczenia") == "1"

    def test_sales_rows(self, serializer, declaration):
        root = parse(serializer.serialize(declaration))

        rows = root.findall("j:Ewidencja/j:SprzedazWiersz", NSMAP)
        assert len(rows) == 2
        first, second = rows
        assert text(first, "j:LpSprzedazy") == "1"
        assert text(first, "j:KodKrajuNadaniaTIN") == "PL"
        assert text(first, "j:NrKontrahenta") == "1234563218"
        assert text(first, "j:NazwaKontrahenta") == "Klient Sp. z o.o."
        assert text(first, "j:DowodSprzedazy") == "FV/1"
        assert text(first, "j:DataWystawienia") == "2024-03-04"
        assert text(first, "j:DataSprzedazy") == "2024-03-04"
        assert text(first, "j:K_10") == "50.00"
        assert text(first, "j:K_19") == "200.00"
        assert text(first, "j:K_20") == "46.00"
        assert text(second, "j:K_17") == "200.00"
        assert text(second, "j:K_18") == "16.00"

    def test_missing_buyer_tax_id_written_as_brak(self, serializer, declaration):
        root = parse(serializer.serialize(declaration))

        second = root.findall("j:Ewidencja/j:SprzedazWiersz", NSMAP)[1]
        assert text(second, "j:NrKontrahenta") == "BRAK"
        assert second.find("j:KodKrajuNadaniaTIN", NSMAP) is None

    def test_purchase_rows(self, serializer, declaration):
        root = parse(serializer.serialize(declaration))

        rows = root.findall("j:Ewidencja/j:ZakupWiersz", NSMAP)
        assert len(rows) == 1
        assert text(rows[0], "j:LpZakupu") == "1"
        assert text(rows[0], "j:NrDostawcy") == "1234563218"
        assert text(rows[0], "j:NazwaDostawcy") == "Dostawca S.A."
        assert text(rows[0], "j:DowodZakupu") == "K/1"
        assert text(rows[0], "j:DataZakupu") == "2024-03-06"
        assert text(rows[0], "j:K_42") == "100.00"
        assert text(rows[0], "j:K_43") == "23.00"

    def test_control_totals(self, serializer, declaration):
        root = parse(serializer.serialize(declaration))

        assert text(root, "j:Ewidencja/j:SprzedazCtrl/j:LiczbaWierszySprzedazy") == "2"
        assert text(root, "j:Ewidencja/j:SprzedazCtrl/j:PodatekNalezny") == "62.00"
        assert text(root, "j:Ewidencja/j:ZakupCtrl/j:LiczbaWierszyZakupow") == "1"
        assert text(root, "j:Ewidencja/j:ZakupCtrl/j:PodatekNaliczony") == "23.00"

    def test_empty_month_still_has_all_sections(self, serializer, builder, flat_profile):
        declaration = builder.build_declaration(MARCH, [], [], flat_profile)

        root = parse(serializer.serialize(declaration))

        assert root.findall("j:Ewidencja/j:SprzedazWiersz", NSMAP) == []
        assert text(root, "j:Ewidencja/j:SprzedazCtrl/j:LiczbaWierszySprzedazy") == "0"
        assert text(root, "j:Ewidencja/j:SprzedazCtrl/j:PodatekNalezny") == "0.00"
        assert text(root, "j:Ewidencja/j:ZakupCtrl/j:LiczbaWierszyZakupow") == "0"
        assert text(root, "j:Deklaracja/j:PozycjeSzczegolowe/j:P_19") == "0.00"
        assert text(root, "j:Deklaracja/j:PozycjeSzczegolowe/j:P_51") == "0.00"

    def test_surplus_positions(self, serializer, builder, flat_profile):
        expenses = [make_expense("K/1", date(2024, 3, 5), ("1", "1000.00", 23))]
        declaration = builder.build_declaration(MARCH, [], expenses, flat_profile)

        root = parse(serializer.serialize(declaration))

        assert text(root, "j:Deklaracja/j:PozycjeSzczegolowe/j:P_51") == "0.00"
        assert text(root, "j:Deklaracja/j:PozycjeSzczegolowe/j:P_53") == "230.00"
        assert text(root, "j:Deklaracja/j:PozycjeSzczegolowe/j:P_62") == "230.00"

    def test_regon_written_when_present(self, serializer, builder, flat_profile):
        declaration = builder.build_declaration(
            MARCH, [], [], replace(flat_profile, regon="123456785")
        )

        root = parse(serializer.serialize(declaration))

        assert text(root, "j:Podmiot1/j:OsobaNiefizyczna/etd:REGON") == "123456785"

    def test_same_declaration_same_xml(self, serializer, declaration):
        assert serializer.serialize(declaration) == serializer.serialize(declaration)


class TestRegisterFlags:
    def test_flags_follow_sale_date_in_register_order(self, serializer, builder, flat_profile):
        invoices = [
            make_invoice(
                "FV/3",
                date(2024, 3, 4),
                ("1", "100.00", 23),
                gtu_codes=("GTU_12", "GTU_01"),
                procedures=("MPP", "TP"),
            )
        ]
        declaration = builder.build_declaration(MARCH, invoices, [], flat_profile)

        row = parse(serializer.serialize(declaration)).find("j:Ewidencja/j:SprzedazWiersz", NSMAP)

        names = [child.tag.split("}")[1] for child in row]
        start = names.index("DataSprzedazy") + 1
        assert names[start:] == ["GTU_01", "GTU_12", "TP", "MPP", "K_19", "K_20"]
        assert text(row, "j:GTU_01") == "1"
        assert text(row, "j:MPP") == "1"

    def test_row_without_flags_has_none(self, serializer, declaration):
        row = parse(serializer.serialize(declaration)).find("j:Ewidencja/j:SprzedazWiersz", NSMAP)

        names = [child.tag.split("}")[1] for child in row]
        assert not any(name.startswith("GTU_") for name in names)
        assert "TP" not in names

    def test_register_columns_in_ascending_order(self, serializer, declaration):
        row = parse(serializer.serialize(declaration)).find("j:Ewidencja/j:SprzedazWiersz", NSMAP)

        columns = [child.tag.split("}")[1] for child in row if child.tag.split("}")[1].startswith("K_")]
        assert columns == ["K_10", "K_19", "K_20"]

    def test_zero_rated_sales_split_by_supply_type(self, serializer, builder, flat_profile):
        invoices = [
            make_invoice("FV/D", date(2024, 3, 4), ("1", "100.00", 0)),
            make_invoice(
                "FV/WDT",
                date(2024, 3, 5),
                ("1", "200.00", 0),
                buyer=Counterparty(name="Kunde GmbH", tax_id="DE123456789", country_code="DE"),
                supply_type="intra_community",
            ),
            make_invoice(
                "FV/EXP",
                date(2024, 3, 6),
                ("1", "300.00", 0),
                buyer=Counterparty(name="Buyer Inc.", country_code="US"),
                supply_type="export",
            ),
        ]
        declaration = builder.build_declaration(MARCH, invoices, [], flat_profile)

        root = parse(serializer.serialize(declaration))

        positions = "j:Deklaracja/j:PozycjeSzczegolowe/j:"
        assert text(root, positions + "P_13_1") == "100.00"
        assert text(root, positions + "P_21") == "200.00"
        assert text(root, positions + "P_22") == "300.00"
        assert text(root, positions + "P_37") == "600.00"
        domestic, intra, export = root.findall("j:Ewidencja/j:SprzedazWiersz", NSMAP)
        assert text(domestic, "j:K_13") == "100.00"
        assert text(intra, "j:K_21") == "200.00"
        assert intra.find("j:K_13", NSMAP) is None
        assert text(export, "j:K_22") == "300.00"
        assert export.find("j:K_13", NSMAP) is None

    def test_zero_rated_positions_follow_p20(self, serializer, declaration):
        pozycje = parse(serializer.serialize(declaration)).find(
            "j:Deklaracja/j:PozycjeSzczegolowe", NSMAP
        )

        names = [child.tag.split("}")[1] for child in pozycje]
        assert names[names.index("P_20") + 1 : names.index("P_20") + 3] == ["P_21", "P_22"]
        assert text(pozycje, "j:P_21") == "0.00"


class TestOutput:
    def test_bytes_start_with_xml_declaration(self, serializer, declaration):
        payload = serializer.serialize_bytes(declaration)

        assert payload.startswith(b'<?xml version="1.0" encoding="UTF-8"?>\n')
        assert ET.fromstring(payload).tag == f"{{{NS}}}JPK"

    def test_polish_characters_survive(self, serializer, builder, flat_profile):
        declaration = builder.build_declaration(
            MARCH, [], [], replace(flat_profile, name="Zażółć Gęślą Jaźń")
        )

        payload = serializer.serialize_bytes(declaration)

        assert "Zażółć Gęślą Jaźń".encode() in payload

    def test_file_name(self, serializer, declaration):
        assert file_name(declaration) == "JPK_V7_5260250274_2024-03.xml"
        assert serializer.file_name(declaration) == "JPK_V7_5260250274_2024-03.xml"

    def test_compact_output(self, declaration):
        xml = JpkXmlSerializer(indent=False).serialize(declaration)

        assert "\n" not in xml

    def test_namespaces_registered_at_import(self, declaration, monkeypatch):
        calls: list[tuple[str, str]] = []
        monkeypatch.setattr(ET, "register_namespace", lambda prefix, uri: calls.append((prefix, uri)))

        outputs = [JpkXmlSerializer().serialize(declaration) for _ in range(3)]

        assert calls == []
        for xml in outputs:
            assert xml.startswith(f'<JPK xmlns="{NS}"')
            assert f'xmlns:etd="{NS_ETD}"' in xml
            assert "ns0:" not in xml


class TestIncompleteDeclaration:
    def test_missing_tax_id(self, serializer, builder, flat_profile):
        declaration = builder.build_declaration(MARCH, [], [], replace(flat_profile, tax_id=""))

        with pytest.raises(IncompleteDeclarationError) as exc_info:
            serializer.serialize(declaration)

        assert "tax ID (NIP)" in exc_info.value.message
        assert exc_info.value.context["field"] == "tax ID (NIP)"

    def test_invalid_tax_id(self, serializer, builder, flat_profile):
        declaration = builder.build_declaration(
            MARCH, [], [], replace(flat_profile, tax_id="1234567890")
        )

        with pytest.raises(IncompleteDeclarationError):
            serializer.serialize(declaration)

    def test_missing_tax_office(self, serializer, builder, flat_profile):
        declaration = builder.build_declaration(
            MARCH, [], [], replace(flat_profile, tax_office_code=None)
        )

        with pytest.raises(IncompleteDeclarationError) as exc_info:
            serializer.serialize(declaration)

        assert "tax office code" in exc_info.value.message

    def test_missing_document_number(self, serializer, builder, flat_profile):
        invoices = [make_invoice("  ", date(2024, 3, 4), ("1", "100.00", 23))]
        declaration = builder.build_declaration(MARCH, invoices, [], flat_profile)

        with pytest.raises(IncompleteDeclarationError):
            serializer.serialize(declaration)

    def test_incomplete_declaration_is_logged(self, serializer, builder, flat_profile, capsys, caplog):
        declaration = builder.build_declaration(MARCH, [], [], replace(flat_profile, tax_id=""))

        with caplog.at_level(logging.ERROR, logger="invoice_tax_engine.services.jpk_serializer"):
            with pytest.raises(IncompleteDeclarationError):
                serializer.serialize(declaration)

        captured = capsys.readouterr()
        assert "declaration_incomplete" in captured.out + captured.err + caplog.text
