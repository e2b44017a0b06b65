"""Renders a JpkDeclaration to JPK_V7M(3) XML.

The element layout is fixed: every section is written even when it has
no rows, and every declaration position is written, as 0.00 when the
bracket is not used.
"""

import xml.etree.ElementTree as ET
from decimal import Decimal

from invoice_tax_engine.domain.declarations import (
    BracketSubtotal,
    JpkDeclaration,
    PurchaseRecord,
    SalesRecord,
)
from invoice_tax_engine.domain.value_objects import (
    ZERO,
    GtuCode,
    ProcedureMarker,
    SupplyType,
    VatRate,
    round2,
)
from invoice_tax_engine.exceptions import IncompleteDeclarationError
from invoice_tax_engine.logging_config import get_logger
from invoice_tax_engine.services.jpk_validator import validate_declaration

logger = get_logger(__name__)

NS = "http://crd.gov.pl/wzor/2025/12/19/14090/"
NS_ETD = "http://crd.gov.pl/xml/schematy/dziedzinowe/mf/2022/09/13/eD/DefinicjeTypy/"
NS_XSI = "http://www.w3.org/2001/XMLSchema-instance"

ET.register_namespace("", NS)
ET.register_namespace("etd", NS_ETD)
ET.register_namespace("xsi", NS_XSI)

FORM_CODE = "JPK_V7M (3)"
FORM_VARIANT = "3"
SCHEMA_VERSION = "1-0E"
DECLARATION_CODE = "VAT-7 (23)"
DECLARATION_VARIANT = "23"

# Register columns per bracket: (net field, VAT field or None)
SALES_FIELDS: dict[VatRate, tuple[str, str | None]] = {
    VatRate.EXEMPT: ("K_10", None),
    VatRate.RATE_0: ("K_13", None),
    VatRate.RATE_5: ("K_15", "K_16"),
    VatRate.RATE_8: ("K_17", "K_18"),
    VatRate.RATE_23: ("K_19", "K_20"),
}
ZERO_RATED_SALES_FIELDS: dict[SupplyType, str] = {
    SupplyType.DOMESTIC: "K_13",
    SupplyType.INTRA_COMMUNITY: "K_21",
    SupplyType.EXPORT: "K_22",
}
PURCHASE_FIELDS = ("K_42", "K_43")

# Declaration positions for the sales brackets, in schema order
DECLARATION_SALES_FIELDS: tuple[tuple[VatRate, str, str | None], ...] = (
    (VatRate.EXEMPT, "P_10", None),
    (VatRate.RATE_0, "P_13_1", None),
    (VatRate.RATE_5, "P_15", "P_16"),
    (VatRate.RATE_8, "P_17", "P_18"),
    (VatRate.RATE_23, "P_19", "P_20"),
)


def format_amount(amount: Decimal) -> str:
    """Two fractional digits with a '.' separator."""
    return f"{round2(amount):.2f}"


def file_name(declaration: JpkDeclaration) -> str:
    return f"JPK_V7_{declaration.subject.tax_id}_{declaration.header.period}.xml"


def _tag(name: str, ns: str = NS) -> str:
    return f"{{{ns}}}{name}"


def _add(parent: ET.Element, name: str, text: str | None = None, ns: str = NS, **attrib: str) -> ET.Element:
    element = ET.SubElement(parent, _tag(name, ns), attrib)
    if text is not None:
        element.text = text
    return element


def _sales_columns(record: SalesRecord) -> list[tuple[str, Decimal]]:
    """Register columns of a sales row in ascending K_ order."""
    columns: list[tuple[str, Decimal]] = []
    for amount in record.amounts:
        net_field, vat_field = SALES_FIELDS[amount.vat_rate]
        if amount.vat_rate is VatRate.RATE_0:
            net_field = ZERO_RATED_SALES_FIELDS[record.supply_type]
        columns.append((net_field, amount.net))
        if vat_field is not None:
            columns.append((vat_field, amount.vat))
    return sorted(columns, key=lambda column: int(column[0][2:]))


class JpkXmlSerializer:
    def __init__(self, *, indent: bool = True) -> None:
        self._indent = indent

    def serialize(self, declaration: JpkDeclaration) -> str:
        """Render the declaration as an XML string (without XML declaration).

        Raises:
            IncompleteDeclarationError: If a mandatory field cannot be
                populated, e.g. the tax ID is missing.
        """
        self._ensure_complete(declaration)
        root = self._build_tree(declaration)
        if self._indent:
            ET.indent(root, space="  ")
        xml = ET.tostring(root, encoding="unicode")
        logger.info(
            "declaration_serialized",
            period=str(declaration.header.period),
            file_name=file_name(declaration),
            size=len(xml),
        )
        return xml

    def serialize_bytes(self, declaration: JpkDeclaration) -> bytes:
        """UTF-8 bytes with an XML declaration, ready to be downloaded."""
        body = self.serialize(declaration)
        return b'<?xml version="1.0" encoding="UTF-8"?>\n' + body.encode("utf-8")

    def file_name(self, declaration: JpkDeclaration) -> str:
        return file_name(declaration)

    def _ensure_complete(self, declaration: JpkDeclaration) -> None:
        result = validate_declaration(declaration)
        for warning in result.warnings:
            logger.warning(
                "declaration_warning",
                code=warning.code,
                message=warning.message,
                period=str(declaration.header.period),
            )
        if not result.is_valid:
            first = result.errors[0]
            logger.error(
                "declaration_incomplete",
                codes=[e.code for e in result.errors],
                period=str(declaration.header.period),
            )
            raise IncompleteDeclarationError(first.field, first.reason)

    def _build_tree(self, declaration: JpkDeclaration) -> ET.Element:
        root = ET.Element(_tag("JPK"))
        self._header(root, declaration)
        self._subject(root, declaration)
        self._declaration(root, declaration)
        self._register(root, declaration)
        return root

    def _header(self, root: ET.Element, declaration: JpkDeclaration) -> None:
        header = declaration.header
        naglowek = _add(root, "Naglowek")
        _add(
            naglowek,
            "KodFormularza",
            "JPK_VAT",
            kodSystemowy=FORM_CODE,
            wersjaSchemy=SCHEMA_VERSION,
        )
        _add(naglowek, "WariantFormularza", FORM_VARIANT)
        _add(naglowek, "DataWytworzeniaJPK", header.generated_at.strftime("%Y-%m-%dT%H:%M:%S"))
        _add(naglowek, "NazwaSystemu", header.system_name)
        _add(naglowek, "CelZlozenia", header.purpose.value, poz="P_7")
        _add(naglowek, "KodUrzedu", header.tax_office_code or "")
        _add(naglowek, "Rok", f"{header.period.year:04d}")
        _add(naglowek, "Miesiac", str(header.period.month))

    def _subject(self, root: ET.Element, declaration: JpkDeclaration) -> None:
        subject = declaration.subject
        podmiot = _add(root, "Podmiot1", rola="Podatnik")
        osoba = _add(podmiot, "OsobaNiefizyczna")
        _add(osoba, "NIP", subject.tax_id, ns=NS_ETD)
        _add(osoba, "PelnaNazwa", subject.full_name, ns=NS_ETD)
        if subject.regon:
            _add(osoba, "REGON", subject.regon, ns=NS_ETD)
        if subject.email:
            _add(osoba, "Email", subject.email)

    def _declaration(self, root: ET.Element, declaration: JpkDeclaration) -> None:
        deklaracja = _add(root, "Deklaracja")
        naglowek = _add(deklaracja, "Naglowek")
        _add(
            naglowek,
            "KodFormularzaDekl",
            "VAT-7",
            kodSystemowy=DECLARATION_CODE,
            kodPodatku="VAT",
            rodzajZobowiazania="Z",
            wersjaSchemy=SCHEMA_VERSION,
        )
        _add(naglowek, "WariantFormularzaDekl", DECLARATION_VARIANT)

        pozycje = _add(deklaracja, "PozycjeSzczegolowe")
        summary = declaration.summary
        for rate, net_field, vat_field in DECLARATION_SALES_FIELDS:
            net, vat = _net_vat(declaration.sales_subtotal(rate))
            if rate is VatRate.RATE_0:
                net = declaration.zero_rated_net(SupplyType.DOMESTIC)
            _add(pozycje, net_field, format_amount(net))
            if vat_field is not None:
                _add(pozycje, vat_field, format_amount(vat))
        _add(pozycje, "P_21", format_amount(declaration.zero_rated_net(SupplyType.INTRA_COMMUNITY)))
        _add(pozycje, "P_22", format_amount(declaration.zero_rated_net(SupplyType.EXPORT)))

        sales_net = sum((s.net for s in declaration.sales_subtotals), ZERO)
        purchase_net = sum((s.net for s in declaration.purchase_subtotals), ZERO)
        _add(pozycje, "P_37", format_amount(sales_net))
        _add(pozycje, "P_38", format_amount(summary.output_vat))
        _add(pozycje, "P_42", format_amount(purchase_net))
        _add(pozycje, "P_43", format_amount(summary.input_vat))
        _add(pozycje, "P_48", format_amount(summary.input_vat))
        _add(pozycje, "P_51", format_amount(summary.vat_payable))
        _add(pozycje, "P_53", format_amount(summary.vat_surplus))
        _add(pozycje, "P_62", format_amount(summary.vat_surplus))
        _add(deklaracja, "Pouczenia", "1")

    def _register(self, root: ET.Element, declaration: JpkDeclaration) -> None:
        ewidencja = _add(root, "Ewidencja")

        for record in declaration.sales:
            self._sales_row(ewidencja, record)
        ctrl = _add(ewidencja, "SprzedazCtrl")
        _add(ctrl, "LiczbaWierszySprzedazy", str(len(declaration.sales)))
        _add(ctrl, "PodatekNalezny", format_amount(declaration.summary.output_vat))

        for record in declaration.purchases:
            self._purchase_row(ewidencja, record)
        ctrl = _add(ewidencja, "ZakupCtrl")
        _add(ctrl, "LiczbaWierszyZakupow", str(len(declaration.purchases)))
        _add(ctrl, "PodatekNaliczony", format_amount(declaration.summary.input_vat))

    def _sales_row(self, parent: ET.Element, record: SalesRecord) -> None:
        row = _add(parent, "SprzedazWiersz")
        _add(row, "LpSprzedazy", str(record.line_number))
        if record.counterparty_tax_id:
            _add(row, "KodKrajuNadaniaTIN", record.country_code)
        _add(row, "NrKontrahenta", record.counterparty_tax_id or "BRAK")
        _add(row, "NazwaKontrahenta", record.counterparty_name or "BRAK")
        _add(row, "DowodSprzedazy", record.document_number)
        _add(row, "DataWystawienia", record.issue_date.isoformat())
        _add(row, "DataSprzedazy", record.sale_date.isoformat())
        for code in GtuCode:
            if code in record.gtu_codes:
                _add(row, code.value, "1")
        for marker in ProcedureMarker:
            if marker in record.procedures:
                _add(row, marker.value, "1")
        for field_name, value in _sales_columns(record):
            _add(row, field_name, format_amount(value))

    def _purchase_row(self, parent: ET.Element, record: PurchaseRecord) -> None:
        row = _add(parent, "ZakupWiersz")
        _add(row, "LpZakupu", str(record.line_number))
        if record.counterparty_tax_id:
            _add(row, "KodKrajuNadaniaTIN", record.country_code)
        _add(row, "NrDostawcy", record.counterparty_tax_id or "BRAK")
        _add(row, "NazwaDostawcy", record.counterparty_name or "BRAK")
        _add(row, "DowodZakupu", record.document_number)
        _add(row, "DataZakupu", record.issue_date.isoformat())
        _add(row, "DataWplywu", record.receipt_date.isoformat())
        net_field, vat_field = PURCHASE_FIELDS
        _add(row, net_field, format_amount(record.total_net))
        _add(row, vat_field, format_amount(record.total_vat))


def _net_vat(subtotal: BracketSubtotal | None) -> tuple[Decimal, Decimal]:
    if subtotal is None:
        return ZERO, ZERO
    return subtotal.net, subtotal.vat
