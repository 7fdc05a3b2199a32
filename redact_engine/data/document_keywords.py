#!/usr/bin/env python3
"""
Document Keywords for Document-Type Classification

Keyword vocabularies, structural patterns and language indicator words used
to classify a whole document as an invoice, letter, form, contract or report.
Keywords are organized by document type, then language (en/fr/de/it).

Usage:
    from redact_engine.data.document_keywords import DOCUMENT_KEYWORDS
    DOCUMENT_KEYWORDS["INVOICE"]["de"]  # ['rechnung', 'rechnungsnummer', ...]
"""

import re
from typing import Dict, List, Pattern


# ============================================================================
# Keywords per document type and language
# ============================================================================

DOCUMENT_KEYWORDS: Dict[str, Dict[str, List[str]]] = {
    "INVOICE": {
        "en": ["invoice", "bill", "payment due", "amount due", "subtotal", "total", "tax", "vat",
               "qty", "quantity", "unit price", "invoice number", "invoice date", "due date",
               "payment terms", "remittance"],
        "fr": ["facture", "montant", "total", "tva", "quantité", "prix unitaire", "numéro de facture",
               "date de facture", "échéance", "règlement", "net à payer", "ht", "ttc"],
        "de": ["rechnung", "rechnungsnummer", "betrag", "mwst", "mehrwertsteuer", "gesamtbetrag",
               "menge", "einzelpreis", "rechnungsdatum", "zahlbar", "fällig", "netto", "brutto"],
        "it": ["fattura", "importo", "totale", "iva", "quantità", "prezzo unitario", "numero fattura",
               "data fattura", "scadenza"],
    },
    "LETTER": {
        "en": ["dear", "sincerely", "regards", "yours truly", "yours faithfully", "best regards",
               "kind regards", "to whom it may concern", "enclosed", "please find", "i am writing",
               "we are writing", "thank you for", "re:", "subject:"],
        "fr": ["cher", "chère", "madame", "monsieur", "cordialement", "salutations", "veuillez agréer",
               "je vous prie", "meilleures salutations", "bien à vous", "ci-joint", "je vous écris",
               "nous vous écrivons", "objet:", "concerne:"],
        "de": ["sehr geehrte", "sehr geehrter", "liebe", "lieber", "mit freundlichen grüßen",
               "mit freundlichen grüssen", "hochachtungsvoll", "beste grüße", "beste grüsse", "anbei",
               "ich schreibe ihnen", "wir schreiben ihnen", "betreff:", "betrifft:"],
        "it": ["gentile", "egregio", "caro", "cara", "cordiali saluti", "distinti saluti",
               "cordialmente", "in allegato", "le scrivo", "oggetto:"],
    },
    "FORM": {
        "en": ["please fill", "please complete", "check box", "checkbox", "select one", "tick",
               "circle", "enter your", "your name", "your address", "date of birth", "signature",
               "sign here", "required field", "mandatory", "optional", "n/a", "not applicable",
               "yes/no", "yes / no"],
        "fr": ["veuillez remplir", "cochez", "case à cocher", "sélectionnez", "entrez", "votre nom",
               "votre adresse", "date de naissance", "signature", "champ obligatoire", "facultatif",
               "oui/non", "non applicable"],
        "de": ["bitte ausfüllen", "ankreuzen", "kontrollkästchen", "wählen sie", "ihr name",
               "ihre adresse", "geburtsdatum", "unterschrift", "pflichtfeld", "optional", "ja/nein",
               "nicht zutreffend", "n.z."],
        "it": ["compilare", "casella", "selezionare", "inserire", "nome", "indirizzo",
               "data di nascita", "firma", "obbligatorio", "facoltativo", "sì/no"],
    },
    "CONTRACT": {
        "en": ["agreement", "contract", "parties", "whereas", "hereby", "herein", "hereto", "thereto",
               "clause", "article", "section", "terms and conditions", "effective date", "termination",
               "obligations", "warranties", "indemnification", "governing law", "jurisdiction",
               "witness", "executed", "binding"],
        "fr": ["contrat", "accord", "parties", "attendu que", "par les présentes", "ci-après", "clause",
               "article", "conditions générales", "date d'entrée en vigueur", "résiliation",
               "obligations", "garanties", "loi applicable", "juridiction", "témoin", "signé"],
        "de": ["vertrag", "vereinbarung", "parteien", "hiermit", "klausel", "artikel", "paragraph",
               "allgemeine geschäftsbedingungen", "agb", "inkrafttreten", "kündigung", "pflichten",
               "gewährleistung", "anwendbares recht", "gerichtsstand", "zeuge", "unterzeichnet"],
        "it": ["contratto", "accordo", "parti", "premesso", "con la presente", "clausola", "articolo",
               "condizioni generali", "decorrenza", "risoluzione", "obblighi", "garanzie",
               "legge applicabile", "foro competente", "testimone", "sottoscritto"],
    },
    "REPORT": {
        "en": ["executive summary", "introduction", "conclusion", "findings", "recommendations",
               "analysis", "methodology", "results", "discussion", "appendix", "table of contents",
               "abstract", "overview", "summary", "background", "objectives", "scope", "key findings"],
        "fr": ["résumé exécutif", "introduction", "conclusion", "résultats", "recommandations",
               "analyse", "méthodologie", "discussion", "annexe", "table des matières", "sommaire",
               "contexte", "objectifs", "périmètre", "principales conclusions"],
        "de": ["zusammenfassung", "einleitung", "fazit", "ergebnisse", "empfehlungen", "analyse",
               "methodik", "diskussion", "anhang", "inhaltsverzeichnis", "überblick", "hintergrund",
               "ziele", "umfang", "kernaussagen"],
        "it": ["sommario", "introduzione", "conclusione", "risultati", "raccomandazioni", "analisi",
               "metodologia", "discussione", "allegato", "indice", "panoramica", "contesto",
               "obiettivi", "ambito"],
    },
}


# ============================================================================
# Structural patterns (each match adds a fixed weight)
# ============================================================================

STRUCTURAL_PATTERNS: Dict[str, List[Pattern]] = {
    "INVOICE": [
        re.compile(r"(?:invoice|rechnung|facture)\s*(?:no\.?|nr\.?|#|:)\s*[\w-]+", re.IGNORECASE),
        re.compile(r"(?:total|montant|betrag)\s*[:=]?\s*(?:chf|eur|usd|€|£|\$)?\s*[\d',.\s]+", re.IGNORECASE),
        re.compile(r"(?:qty|menge|quantité)\s+(?:unit|preis|prix)", re.IGNORECASE),
        re.compile(r"(?:chf|eur|usd)\s*[\d',.\s]+", re.IGNORECASE),
        re.compile(r"\d+[.,]\d{2}\s*(?:chf|eur|usd|€)", re.IGNORECASE),
    ],
    "LETTER": [
        re.compile(r"^(?:dear|sehr geehrte[r]?|cher|chère|madame|monsieur)", re.IGNORECASE | re.MULTILINE),
        re.compile(r"(?:sincerely|regards|cordialement|grüße|grüssen|salutations)\s*,?\s*$",
                   re.IGNORECASE | re.MULTILINE),
        re.compile(r"^(?:re:|betreff:|objet:|subject:)", re.IGNORECASE | re.MULTILINE),
        re.compile(r"(?:enclosed|anbei|ci-joint|in allegato)", re.IGNORECASE),
    ],
    "FORM": [
        re.compile(r"\[\s*\]|\(\s*\)|□|☐|☑|☒"),
        re.compile(r"(?:name|nom):\s*_{2,}|_{5,}", re.IGNORECASE),
        re.compile(r"(?:yes|no|oui|non|ja|nein)\s*(?:\[\s*\]|\(\s*\))", re.IGNORECASE),
        re.compile(r"please\s+(?:check|tick|fill|complete)", re.IGNORECASE),
        re.compile(r"\*\s*(?:required|obligatoire|pflichtfeld)", re.IGNORECASE),
    ],
    "CONTRACT": [
        re.compile(r"(?:between|entre|zwischen)\s+(?:the\s+)?(?:parties|parteien|les parties)", re.IGNORECASE),
        re.compile(r"(?:article|clause|section)\s+\d+", re.IGNORECASE),
        re.compile(r"(?:whereas|attendu que|in anbetracht)", re.IGNORECASE),
        re.compile(r"(?:hereby|par les présentes|hiermit)\s+(?:agree|conviennent|vereinbaren)", re.IGNORECASE),
        re.compile(r"(?:witness|témoin|zeuge)\s+(?:whereof|de quoi)", re.IGNORECASE),
    ],
    "REPORT": [
        re.compile(r"(?:table\s+of\s+contents|inhaltsverzeichnis|table\s+des\s+matières)", re.IGNORECASE),
        re.compile(r"(?:executive\s+summary|zusammenfassung|résumé)", re.IGNORECASE),
        re.compile(r"^(?:\d+\.|\d+\))\s+(?:introduction|methodology|results|conclusion)",
                   re.IGNORECASE | re.MULTILINE),
        re.compile(r"(?:appendix|anhang|annexe)\s+[a-z\d]", re.IGNORECASE),
        re.compile(r"(?:figure|table|abbildung|tabelle)\s+\d+", re.IGNORECASE),
    ],
}


# ============================================================================
# Position boosts (first/last five lines of the document)
# ============================================================================

# (document type, feature name, zone, pattern, weight)
POSITION_BOOSTS = [
    ("INVOICE", "position:invoice_header", "start", re.compile(r"invoice|rechnung|facture", re.IGNORECASE), 0.2),
    ("LETTER", "position:salutation_start", "start",
     re.compile(r"dear|sehr geehrte|cher|madame|monsieur", re.IGNORECASE), 0.2),
    ("LETTER", "position:signature_end", "end",
     re.compile(r"sincerely|regards|grüß|grüss|cordialement|salutations", re.IGNORECASE), 0.15),
    ("CONTRACT", "position:parties_clause", "start",
     re.compile(r"between|entre|zwischen.*parties|parteien", re.IGNORECASE), 0.2),
    ("REPORT", "position:toc_header", "start",
     re.compile(r"table of contents|inhaltsverzeichnis|table des matières", re.IGNORECASE), 0.25),
]


# ============================================================================
# Language indicator words
# ============================================================================

LANGUAGE_INDICATORS: Dict[str, List[str]] = {
    "en": ["the", "and", "is", "are", "was", "were", "have", "has", "this", "that", "with", "for",
           "your", "please"],
    "fr": ["le", "la", "les", "de", "du", "des", "et", "est", "sont", "vous", "nous", "dans", "pour",
           "avec", "cette", "votre"],
    "de": ["der", "die", "das", "und", "ist", "sind", "ihr", "ihre", "wir", "mit", "für", "von", "bei",
           "nach", "bitte"],
    "it": ["il", "la", "le", "di", "del", "della", "e", "è", "sono", "con", "per", "nella", "questo",
           "questa"],
}

# Pipeline-level language markers (de/fr/en only, ties resolve to German)
PIPELINE_LANGUAGE_MARKERS: Dict[str, List[str]] = {
    "de": ["und", "der", "die", "das", "ist", "für", "mit", "von", "strasse"],
    "fr": ["et", "le", "la", "les", "de", "du", "des", "pour", "rue", "avec"],
    "en": ["the", "and", "of", "to", "in", "is", "for", "with", "street"],
}
