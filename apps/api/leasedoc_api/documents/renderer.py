"""Lease document rendering: model -> HTML -> PDF.

HTML is produced with jinja2. The PDF is laid out with reportlab, or produced
by an external HTML-to-PDF service when ``PDF_SERVICE_URL`` is configured.
Rendering has no side effects and runs under a timeout.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from decimal import Decimal
from io import BytesIO
from typing import Optional
from xml.sax.saxutils import escape

import httpx
from jinja2 import Template
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from reportlab.platypus.doctemplate import LayoutError

from leasedoc_api.documents.errors import RenderError
from leasedoc_api.documents.schema import LeaseDocumentModel
from leasedoc_api.settings import get_settings
from leasedoc_api.utils.metrics import render_duration_seconds

logger = logging.getLogger(__name__)

LEASE_TYPE_LABELS = {
    "nu": "Bail d'habitation (logement vide)",
    "meuble": "Bail d'habitation (logement meublé)",
    "colocation": "Bail de colocation",
    "saisonnier": "Bail de location saisonnière",
    "mobilite": "Bail mobilité",
    "etudiant": "Bail étudiant",
}

CONSTRUCTION_PERIOD_LABELS = {
    "avant_1949": "Avant 1949",
    "1949_1974": "De 1949 à 1974",
    "1975_1989": "De 1975 à 1989",
    "1990_2005": "De 1990 à 2005",
    "apres_2005": "Après 2005",
}

TEMPLATE = """<!DOCTYPE html>
<html lang="fr">
<head>
    <meta charset="UTF-8">
    <title>{{ title }} - {{ doc.reference }}</title>
    <style>
        body { font-family: Helvetica, Arial, sans-serif; color: #1a1a1a; line-height: 1.5; margin: 40px; }
        h1 { font-size: 1.6em; text-align: center; margin-bottom: 4px; }
        h2 { font-size: 1.15em; color: #2c3e50; border-bottom: 1px solid #dee2e6; padding-bottom: 4px; margin-top: 28px; }
        table { border-collapse: collapse; width: 100%; }
        td { border: 1px solid #dee2e6; padding: 6px 8px; vertical-align: top; }
        td.label { background: #f8f9fa; font-weight: bold; width: 35%; }
        .reference { text-align: center; color: #6c757d; }
        .signatures td { height: 80px; }
    </style>
</head>
<body>
    <h1>{{ title }}</h1>
    <p class="reference">Référence {{ doc.reference }}</p>

    <h2>I. Désignation des parties</h2>
    <table>
        <tr><td class="label">Bailleur</td><td>
            {{ doc.landlord.display_name }}
            {% if doc.landlord.owner_type == "societe" %}
            <br>{{ doc.landlord.legal_form }}{% if doc.landlord.siret %}, SIRET {{ doc.landlord.siret }}{% endif %}
            <br>Représentée par {{ doc.landlord.representative_name }}, {{ doc.landlord.representative_title }}
            {% endif %}
            <br>{{ doc.landlord.address }}
        </td></tr>
        {% for tenant in doc.tenants %}
        <tr><td class="label">Locataire{% if doc.tenants|length > 1 %} {{ loop.index }}{% endif %}</td><td>
            {{ tenant.display_name }}
            {% if tenant.birth_date %}<br>Né(e) le {{ tenant.birth_date.strftime("%d/%m/%Y") }}{% if tenant.birth_place %} à {{ tenant.birth_place }}{% endif %}{% endif %}
            {% if tenant.email %}<br>{{ tenant.email }}{% endif %}
        </td></tr>
        {% endfor %}
    </table>

    <h2>II. Objet du contrat</h2>
    <table>
        <tr><td class="label">Adresse</td><td>{{ doc.premises.address }} {{ doc.premises.postal_code }} {{ doc.premises.city }}</td></tr>
        <tr><td class="label">Type</td><td>{{ doc.premises.property_type }}</td></tr>
        <tr><td class="label">Surface habitable</td><td>{% if doc.premises.living_area_m2 %}{{ doc.premises.living_area_m2 }} m²{% else %}..........{% endif %}</td></tr>
        <tr><td class="label">Pièces principales</td><td>{{ doc.premises.rooms }}</td></tr>
        {% if doc.premises.construction_period %}<tr><td class="label">Époque de construction</td><td>{{ periods.get(doc.premises.construction_period, doc.premises.construction_period) }}</td></tr>{% endif %}
        <tr><td class="label">Régime juridique</td><td>{{ doc.premises.ownership_regime }}</td></tr>
        {% if doc.premises.equipment %}<tr><td class="label">Équipements</td><td>{{ doc.premises.equipment|join(", ") }}</td></tr>{% endif %}
        {% if doc.premises.annexes %}<tr><td class="label">Annexes</td><td>{{ doc.premises.annexes|join(", ") }}</td></tr>{% endif %}
    </table>

    <h2>III. Date de prise d'effet et durée</h2>
    <table>
        <tr><td class="label">Prise d'effet</td><td>{{ fmt_date(doc.terms.start_date) }}</td></tr>
        <tr><td class="label">Durée</td><td>{{ doc.terms.duration_months }} mois</td></tr>
        <tr><td class="label">Fin</td><td>{{ fmt_date(doc.terms.end_date) }}</td></tr>
        <tr><td class="label">Tacite reconduction</td><td>{{ "Oui" if doc.terms.tacit_renewal else "Non" }}</td></tr>
    </table>

    <h2>IV. Conditions financières</h2>
    <table>
        <tr><td class="label">Loyer hors charges</td><td>{{ money(doc.terms.rent) }} ({{ doc.terms.rent_in_words }})</td></tr>
        <tr><td class="label">Charges ({{ doc.terms.charges_type }})</td><td>{{ money(doc.terms.charges) }}</td></tr>
        <tr><td class="label">Total mensuel</td><td>{{ money(doc.terms.total_rent) }} ({{ doc.terms.total_rent_in_words }})</td></tr>
        <tr><td class="label">Paiement</td><td>Le {{ doc.terms.payment_day }} de chaque mois, {{ "d'avance (terme à échoir)" if doc.terms.payment_in_advance else "à terme échu" }}, par {{ doc.terms.payment_method }}</td></tr>
        <tr><td class="label">Révision</td><td>{{ "Annuelle, indice " ~ doc.terms.revision_index if doc.terms.rent_revision_allowed else "Non applicable" }}</td></tr>
        <tr><td class="label">Dépôt de garantie</td><td>{{ money(doc.terms.deposit) }} ({{ doc.terms.deposit_in_words }})</td></tr>
    </table>

    <h2>V. Diagnostics techniques</h2>
    <table>
        <tr><td class="label">Classe énergie</td><td>{{ doc.diagnostics.energy_class or "Non renseignée" }}</td></tr>
        <tr><td class="label">Classe climat (GES)</td><td>{{ doc.diagnostics.ghg_class or "Non renseignée" }}</td></tr>
        {% if doc.diagnostics.consumption %}<tr><td class="label">Consommation</td><td>{{ doc.diagnostics.consumption }} kWh/m²/an</td></tr>{% endif %}
        {% if doc.diagnostics.cost_min and doc.diagnostics.cost_max %}<tr><td class="label">Estimation des coûts annuels</td><td>{{ money(doc.diagnostics.cost_min) }} à {{ money(doc.diagnostics.cost_max) }}</td></tr>{% endif %}
        {% for entry in doc.diagnostics.documents %}
        <tr><td class="label">{{ entry.label }}</td><td>{{ fmt_date(entry.performed_on) }}{% if entry.result %}, {{ entry.result }}{% endif %}</td></tr>
        {% endfor %}
    </table>

    <h2>VI. Signatures</h2>
    <p>Fait à {{ doc.signing_place }}, le {{ fmt_date(doc.signing_date) }}</p>
    <table class="signatures">
        <tr>
            {% for block in signature_blocks %}
            <td><strong>{{ block.label }}</strong><br>{{ block.party_name }}<br>
                {% if block.status == "signed" %}Signé électroniquement{% if block.signed_at %} le {{ block.signed_at.strftime("%d/%m/%Y") }}{% endif %}{% else %}En attente de signature{% endif %}
                {% if block.proof %}<br><small class="proof">{{ block.proof }}</small>{% endif %}
            </td>
            {% endfor %}
        </tr>
    </table>
</body>
</html>
"""

_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="render")


def format_money(amount: Optional[Decimal]) -> str:
    """French currency formatting: 1 234,50 €."""
    if amount is None:
        return ".......... €"
    text = f"{Decimal(amount):,.2f}".replace(",", " ").replace(".", ",")
    return f"{text} €"


def signature_proof(block: dict) -> str:
    """Electronic signature proof line of a signed block, or an empty string."""
    if block["status"] != "signed" or not (block["proof_id"] or block["document_hash"]):
        return ""
    parts = []
    if block["proof_id"]:
        parts.append(f"Preuve {block['proof_id']}")
    if block["document_hash"]:
        parts.append(f"Hash du document {block['document_hash'][:32]}...")
    return ", ".join(parts)


def format_date(value) -> str:
    return value.strftime("%d/%m/%Y") if value else ".........."


@dataclass(frozen=True)
class RenderedDocument:
    """Rendered binary document."""

    content: bytes
    content_type: str
    filename: str


class LeaseDocumentRenderer:
    """Render lease document models to HTML and PDF."""

    def __init__(
        self,
        timeout_seconds: Optional[float] = None,
        pdf_service_url: Optional[str] = None,
    ):
        settings = get_settings()
        self.timeout_seconds = timeout_seconds or settings.render_timeout_seconds
        self.pdf_service_url = pdf_service_url if pdf_service_url is not None else settings.pdf_service_url

    def _signature_blocks(self, doc: LeaseDocumentModel) -> list:
        blocks = [
            {"label": "Le bailleur", **doc.signatures.landlord.model_dump()},
            {"label": "Le locataire", **doc.signatures.tenant.model_dump()},
        ]
        if doc.signatures.guarantor:
            blocks.append({"label": "La caution", **doc.signatures.guarantor.model_dump()})
        for block in blocks:
            block["proof"] = signature_proof(block)
        return blocks

    def render_html(self, doc: LeaseDocumentModel) -> str:
        """Render the lease as a standalone HTML page."""
        template = Template(TEMPLATE, autoescape=True)
        return template.render(
            doc=doc,
            title=LEASE_TYPE_LABELS.get(doc.terms.lease_type, "Contrat de location"),
            periods=CONSTRUCTION_PERIOD_LABELS,
            signature_blocks=self._signature_blocks(doc),
            money=format_money,
            fmt_date=format_date,
        )

    def filename(self, doc: LeaseDocumentModel) -> str:
        return f"bail_{doc.reference}.pdf"

    def render(self, doc: LeaseDocumentModel) -> RenderedDocument:
        """Render the lease to PDF under the configured timeout.

        Raises:
            RenderError: rendering failed or timed out
        """
        started = time.perf_counter()
        future = _executor.submit(self._render_pdf, doc)
        try:
            content = future.result(timeout=self.timeout_seconds)
        except FutureTimeoutError:
            future.cancel()
            logger.error(
                f"Rendering timed out after {self.timeout_seconds}s",
                extra={"lease_id": doc.lease_id},
            )
            raise RenderError("Document rendering timed out, please retry")
        finally:
            render_duration_seconds.observe(time.perf_counter() - started)

        return RenderedDocument(
            content=content,
            content_type="application/pdf",
            filename=self.filename(doc),
        )

    def _render_pdf(self, doc: LeaseDocumentModel) -> bytes:
        if self.pdf_service_url:
            return self._render_remote(doc)
        try:
            return self.render_pdf(doc)
        except (LayoutError, ValueError, LookupError, OSError) as e:
            logger.error(f"PDF layout failed: {e}", extra={"lease_id": doc.lease_id})
            raise RenderError() from e

    def _render_remote(self, doc: LeaseDocumentModel) -> bytes:
        html = self.render_html(doc)
        try:
            response = httpx.post(
                self.pdf_service_url,
                json={"html": html, "filename": self.filename(doc)},
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"PDF service call failed: {e}", extra={"lease_id": doc.lease_id})
            raise RenderError() from e

        if not response.content.startswith(b"%PDF"):
            logger.error(
                "PDF service returned a non-PDF body",
                extra={"lease_id": doc.lease_id, "content_type": response.headers.get("content-type")},
            )
            raise RenderError()
        return response.content

    def render_pdf(self, doc: LeaseDocumentModel) -> bytes:
        """Lay out the lease with reportlab.

        Output is byte-stable for a given model (invariant mode).
        """
        buffer = BytesIO()
        pdf = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=2 * cm,
            leftMargin=2 * cm,
            topMargin=2 * cm,
            bottomMargin=2 * cm,
            title=f"Bail {doc.reference}",
            invariant=1,
        )
        styles = getSampleStyleSheet()

        title_style = ParagraphStyle(
            "LeaseTitle",
            parent=styles["Title"],
            fontSize=18,
            textColor=colors.HexColor("#1a1a1a"),
            spaceAfter=6,
            alignment=1,  # Center
        )
        heading_style = ParagraphStyle(
            "LeaseHeading",
            parent=styles["Heading2"],
            fontSize=12,
            textColor=colors.HexColor("#2c3e50"),
            spaceAfter=8,
            spaceBefore=14,
        )
        cell_style = ParagraphStyle(
            "LeaseCell",
            parent=styles["Normal"],
            fontSize=9,
            leading=11,
        )
        table_style = TableStyle(
            [
                ("BACKGROUND", (0, 0), (0, -1), colors.HexColor("#f8f9fa")),
                ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 5),
                ("TOPPADDING", (0, 0), (-1, -1), 5),
                ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#dee2e6")),
            ]
        )

        def section(title: str, rows: list) -> list:
            data = [
                [Paragraph(escape(label), cell_style), Paragraph(escape(str(value)), cell_style)]
                for label, value in rows
            ]
            table = Table(data, colWidths=[5.5 * cm, 11.5 * cm])
            table.setStyle(table_style)
            return [Paragraph(f"<b>{escape(title)}</b>", heading_style), table]

        landlord = doc.landlord
        landlord_text = landlord.display_name
        if landlord.owner_type == "societe":
            landlord_text += f", {landlord.legal_form}"
            if landlord.siret:
                landlord_text += f", SIRET {landlord.siret}"
            landlord_text += f", représentée par {landlord.representative_name} ({landlord.representative_title})"
        landlord_text += f", {landlord.address}"

        parties = [("Bailleur", landlord_text)]
        for i, tenant in enumerate(doc.tenants, start=1):
            label = f"Locataire {i}" if len(doc.tenants) > 1 else "Locataire"
            parties.append((label, ", ".join(p for p in (tenant.display_name, tenant.email) if p)))

        premises = doc.premises
        premises_rows = [
            ("Adresse", f"{premises.address} {premises.postal_code} {premises.city}".strip()),
            ("Type", premises.property_type),
            ("Surface habitable", f"{premises.living_area_m2} m²" if premises.living_area_m2 else ".........."),
            ("Pièces principales", premises.rooms),
            ("Régime juridique", premises.ownership_regime),
        ]
        if premises.construction_period:
            premises_rows.append(
                ("Époque de construction", CONSTRUCTION_PERIOD_LABELS.get(premises.construction_period, ""))
            )
        if premises.equipment:
            premises_rows.append(("Équipements", ", ".join(premises.equipment)))
        if premises.annexes:
            premises_rows.append(("Annexes", ", ".join(premises.annexes)))

        terms = doc.terms
        duration_rows = [
            ("Prise d'effet", format_date(terms.start_date)),
            ("Durée", f"{terms.duration_months} mois"),
            ("Fin", format_date(terms.end_date)),
            ("Tacite reconduction", "Oui" if terms.tacit_renewal else "Non"),
        ]
        financial_rows = [
            ("Loyer hors charges", f"{format_money(terms.rent)} ({terms.rent_in_words})"),
            (f"Charges ({terms.charges_type})", format_money(terms.charges)),
            ("Total mensuel", f"{format_money(terms.total_rent)} ({terms.total_rent_in_words})"),
            (
                "Paiement",
                f"Le {terms.payment_day} de chaque mois, "
                + ("d'avance (terme à échoir)" if terms.payment_in_advance else "à terme échu"),
            ),
            ("Dépôt de garantie", f"{format_money(terms.deposit)} ({terms.deposit_in_words})"),
        ]

        diagnostics = doc.diagnostics
        diagnostic_rows = [
            ("Classe énergie", diagnostics.energy_class or "Non renseignée"),
            ("Classe climat (GES)", diagnostics.ghg_class or "Non renseignée"),
        ]
        for entry in diagnostics.documents:
            diagnostic_rows.append((entry.label, format_date(entry.performed_on)))

        signature_rows = [
            (
                block["label"],
                f"{block['party_name'] or '..........'}: "
                + ("signé" if block["status"] == "signed" else "en attente")
                + (f" ({block['proof']})" if block["proof"] else ""),
            )
            for block in self._signature_blocks(doc)
        ]

        story = [
            Paragraph(escape(LEASE_TYPE_LABELS.get(terms.lease_type, "Contrat de location")), title_style),
            Paragraph(f"Référence {escape(doc.reference)}", styles["Normal"]),
            Spacer(1, 0.4 * cm),
        ]
        story += section("I. Désignation des parties", parties)
        story += section("II. Objet du contrat", premises_rows)
        story += section("III. Date de prise d'effet et durée", duration_rows)
        story += section("IV. Conditions financières", financial_rows)
        story += section("V. Diagnostics techniques", diagnostic_rows)
        story += section("VI. Signatures", signature_rows)
        story.append(Spacer(1, 0.4 * cm))
        story.append(
            Paragraph(
                f"Fait à {escape(doc.signing_place)}, le {format_date(doc.signing_date)}",
                styles["Normal"],
            )
        )

        pdf.build(story)
        return buffer.getvalue()


# Global instance
_renderer: Optional[LeaseDocumentRenderer] = None


def get_renderer() -> LeaseDocumentRenderer:
    """Get or create renderer instance."""
    global _renderer
    if _renderer is None:
        _renderer = LeaseDocumentRenderer()
    return _renderer
