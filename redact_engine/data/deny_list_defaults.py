#!/usr/bin/env python3
"""
Default Deny-List Entries for False Positive Suppression

Table headers, invoice terms and other literals that the high-recall
recognizers regularly mistake for PII, plus per-entity-type patterns.

Literal entries match the whole (trimmed) candidate text; pattern entries are
regular expressions searched in the candidate. Everything is matched
case-insensitively by the DenyList.

Usage:
    from redact_engine.data.deny_list_defaults import DEFAULT_GLOBAL_LITERALS
    "montant" in {w.lower() for w in DEFAULT_GLOBAL_LITERALS}  # True
"""

from typing import Dict, List


# ============================================================================
# Global literals (apply to every entity type)
# ============================================================================

DEFAULT_GLOBAL_LITERALS: List[str] = [
    # French table headers / invoice terms
    "Montant", "Libellé", "Description", "Quantité", "Prix", "Total", "Sous-total",
    "TVA", "Rabais", "Réduction", "Référence", "Numéro", "Facture", "Client",
    "Fournisseur", "Désignation", "Unité", "Remise", "HT", "TTC",
    # German table headers / invoice terms
    "Beschreibung", "Betrag", "Menge", "Preis", "Summe", "MwSt", "Zwischensumme",
    "Rabatt", "Referenz", "Nummer", "Rechnung", "Kunde", "Lieferant", "Bezeichnung",
    "Einheit", "Netto", "Brutto",
    # English table headers / invoice terms
    "Amount", "Quantity", "Price", "Subtotal", "Tax", "Discount", "Reference",
    "Number", "Invoice", "Customer", "Supplier", "Unit", "Net", "Gross",
    # Date labels
    "Date", "Datum",
]


# ============================================================================
# Per-entity-type patterns
# ============================================================================

DEFAULT_ENTITY_PATTERNS: Dict[str, List[str]] = {
    "PERSON_NAME": [
        # Pure numbers
        r"^\d+$",
        # Month abbreviations (en/fr/de)
        r"^(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)$",
        r"^(?:Janv|Févr|Mars|Avr|Mai|Juin|Juil|Août|Sept|Oct|Nov|Déc)$",
        r"^(?:Jan|Feb|Mär|Apr|Mai|Jun|Jul|Aug|Sep|Okt|Nov|Dez)$",
        # Day abbreviations
        r"^(?:Mon|Tue|Wed|Thu|Fri|Sat|Sun)$",
        # Legal-form suffixes mark organizations
        r"\b(?:Ltd|AG|SA|GmbH|Inc|Corp|LLC|Sàrl|SARL|Cie|KG|OHG|SE|NV|BV|Plc)\.?$",
        # Street prefixes
        r"^(?:Via|Viale|Piazza|Corso|Vicolo|Largo|Rue|Avenue|Boulevard|Chemin|Route|Place|Allée"
        r"|Strasse|Straße|Gasse|Weg|Platz|Allee)\b",
        # Company / service names
        r"\b(?:Holding|Group|Technologies|Services|Solutions|Systems|Consulting|Partners"
        r"|Associates|Foundation|Institute|Bank)\s*$",
        # Capitalized product/service pairs
        r"^(?:Case|Notre|Votre|Services|Gestion|Module|Données|Coordonnées)\s",
    ],
    "ORGANIZATION": [],
}


# ============================================================================
# Per-language literals
# ============================================================================

DEFAULT_LANGUAGE_LITERALS: Dict[str, List[str]] = {
    "fr": [],
    "de": [],
    "en": [],
}
