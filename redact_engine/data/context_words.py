#!/usr/bin/env python3
"""
Context Word Database for Confidence Adjustment

Weighted, polarity-tagged words organized by entity type then language
(en/fr/de). Positive words found near a candidate raise its confidence
("Name: John"); negative words lower it ("Müller AG" near a person name).

Sources: Presidio default context lists plus Swiss/EU curated vocabulary.

Usage:
    from redact_engine.data.context_words import get_context_words
    words = get_context_words("IBAN", "de")
    [w.word for w in words if w.polarity == "positive"]  # ['iban', 'konto', ...]
"""

from dataclasses import dataclass
from typing import Dict, List


@dataclass(frozen=True)
class ContextWord:
    """A word or phrase with a weight (0-1) and a polarity."""
    word: str
    weight: float
    polarity: str  # "positive" | "negative"

    @property
    def is_positive(self) -> bool:
        return self.polarity == "positive"


def pos(word: str, weight: float = 1.0) -> ContextWord:
    return ContextWord(word, weight, "positive")


def neg(word: str, weight: float = 0.8) -> ContextWord:
    return ContextWord(word, weight, "negative")


CONTEXT_WORDS_METADATA = {
    "version": "1.0.0",
    "source": "Presidio context lists + Swiss/EU curated",
}


# ============================================================================
# Context words by entity type and language
# ============================================================================

CONTEXT_WORDS: Dict[str, Dict[str, List[ContextWord]]] = {
    "PERSON_NAME": {
        "en": [
            # Salutations
            pos("mr"), pos("mrs"), pos("ms"), pos("miss"), pos("dr"), pos("prof"),
            pos("sir", 0.9), pos("madam", 0.9),
            # Field labels
            pos("name", 0.9), pos("full name"), pos("first name", 0.9), pos("last name", 0.9),
            pos("surname", 0.9), pos("given name", 0.9), pos("contact", 0.8),
            pos("attention", 0.8), pos("attn", 0.8), pos("dear", 0.7), pos("recipient", 0.8),
            # Roles
            pos("by", 0.6), pos("from", 0.6), pos("to", 0.6), pos("author", 0.7),
            pos("owner", 0.7), pos("manager", 0.7), pos("director", 0.7), pos("signed", 0.6),
            pos("approved", 0.6), pos("employee", 0.7), pos("customer", 0.7), pos("client", 0.7),
            # Placeholders
            neg("example.com", 0.9), neg("test@", 0.8), neg("lorem", 0.7), neg("ipsum", 0.7),
            neg("placeholder", 0.8),
            # Legal forms (organization, not person)
            neg("ltd", 1.0), neg("inc", 1.0), neg("corp", 1.0), neg("llc", 1.0), neg("plc", 1.0),
            neg("group", 0.9), neg("holding", 0.9), neg("technologies", 0.9),
            neg("services", 0.8), neg("solutions", 0.8),
            # Street types (address, not person)
            neg("street", 0.9), neg("road", 0.9), neg("avenue", 0.9), neg("lane", 0.9),
        ],
        "fr": [
            pos("m."), pos("mme"), pos("mlle"), pos("dr"), pos("prof"), pos("monsieur"),
            pos("madame"), pos("mademoiselle", 0.9),
            pos("nom", 0.9), pos("prénom", 0.9), pos("nom complet"), pos("nom de famille", 0.9),
            pos("contact", 0.8), pos("attention", 0.8), pos("cher", 0.7), pos("chère", 0.7),
            pos("destinataire", 0.8),
            pos("par", 0.6), pos("de", 0.5), pos("à", 0.5), pos("auteur", 0.7),
            pos("propriétaire", 0.7), pos("responsable", 0.7), pos("directeur", 0.7),
            pos("signé", 0.6), pos("approuvé", 0.6), pos("employé", 0.7), pos("client", 0.7),
            neg("exemple.com", 0.9), neg("test@", 0.8),
            neg("sa", 1.0), neg("sàrl", 1.0), neg("sarl", 1.0), neg("cie", 0.9),
            neg("groupe", 0.9), neg("holding", 0.9), neg("technologies", 0.9), neg("services", 0.8),
            neg("rue", 0.9), neg("avenue", 0.9), neg("boulevard", 0.9), neg("chemin", 0.9),
            neg("route", 0.9), neg("place", 0.9),
            # Italian street types are common in Swiss French documents
            neg("via", 0.9), neg("viale", 0.9), neg("piazza", 0.9),
        ],
        "de": [
            pos("herr"), pos("frau"), pos("dr"), pos("dr."), pos("prof"), pos("prof."),
            pos("sehr geehrter"), pos("sehr geehrte"), pos("lieber", 0.8), pos("liebe", 0.8),
            pos("name", 0.9), pos("vorname", 0.9), pos("nachname", 0.9), pos("vollständiger name"),
            pos("familienname", 0.9), pos("kontakt", 0.8), pos("achtung", 0.8),
            pos("empfänger", 0.8),
            pos("von", 0.6), pos("an", 0.6), pos("autor", 0.7), pos("eigentümer", 0.7),
            pos("verantwortlich", 0.7), pos("direktor", 0.7), pos("unterschrieben", 0.6),
            pos("genehmigt", 0.6), pos("mitarbeiter", 0.7), pos("kunde", 0.7),
            neg("beispiel.com", 0.9), neg("test@", 0.8),
            neg("ag", 1.0), neg("gmbh", 1.0), neg("kg", 0.9), neg("ohg", 0.9), neg("se", 0.9),
            neg("gruppe", 0.9), neg("holding", 0.9), neg("technologien", 0.9),
            neg("dienstleistungen", 0.8),
            neg("strasse", 0.9), neg("straße", 0.9), neg("gasse", 0.9), neg("weg", 0.9),
            neg("platz", 0.9), neg("allee", 0.9),
        ],
    },
    "PHONE": {
        "en": [
            pos("phone"), pos("tel"), pos("telephone"), pos("mobile", 0.9), pos("cell", 0.9),
            pos("cellphone", 0.9), pos("fax", 0.8), pos("call", 0.7), pos("contact", 0.7),
            pos("number", 0.6), pos("direct", 0.7), pos("office", 0.7), pos("home", 0.6),
            pos("work", 0.6),
            neg("order", 0.6), neg("invoice", 0.6), neg("reference", 0.6),
        ],
        "fr": [
            pos("téléphone"), pos("tél"), pos("tél."), pos("mobile", 0.9), pos("portable", 0.9),
            pos("natel", 0.9), pos("fax", 0.8), pos("appeler", 0.7), pos("contact", 0.7),
            pos("numéro", 0.6), pos("direct", 0.7), pos("bureau", 0.7), pos("domicile", 0.6),
            pos("travail", 0.6),
            neg("commande", 0.6), neg("facture", 0.6), neg("référence", 0.6),
        ],
        "de": [
            pos("telefon"), pos("tel"), pos("tel."), pos("mobil", 0.9), pos("handy", 0.9),
            pos("natel", 0.9), pos("fax", 0.8), pos("anrufen", 0.7), pos("kontakt", 0.7),
            pos("nummer", 0.6), pos("direkt", 0.7), pos("büro", 0.7), pos("privat", 0.6),
            pos("geschäftlich", 0.6),
            neg("bestellung", 0.6), neg("rechnung", 0.6), neg("referenz", 0.6),
        ],
    },
    "EMAIL": {
        "en": [
            pos("email"), pos("e-mail"), pos("mail", 0.8), pos("contact", 0.7),
            pos("address", 0.6), pos("send", 0.6), pos("write", 0.6), pos("message", 0.6),
            pos("reply", 0.6),
            neg("example.com", 0.9), neg("test.com", 0.9), neg("domain.com", 0.8),
            neg("placeholder", 0.8),
        ],
        "fr": [
            pos("courriel"), pos("e-mail"), pos("email"), pos("mail", 0.8), pos("contact", 0.7),
            pos("adresse", 0.6), pos("envoyer", 0.6), pos("écrire", 0.6), pos("message", 0.6),
            pos("répondre", 0.6),
            neg("exemple.com", 0.9), neg("test.com", 0.9),
        ],
        "de": [
            pos("email"), pos("e-mail"), pos("mail", 0.8), pos("kontakt", 0.7),
            pos("adresse", 0.6), pos("senden", 0.6), pos("schreiben", 0.6),
            pos("nachricht", 0.6), pos("antworten", 0.6),
            neg("beispiel.com", 0.9), neg("test.com", 0.9),
        ],
    },
    "ADDRESS": {
        "en": [
            pos("address"), pos("street", 0.9), pos("road", 0.8), pos("avenue", 0.8),
            pos("boulevard", 0.8), pos("lane", 0.7), pos("postal", 0.8), pos("postal code"),
            pos("zip", 0.8), pos("zip code"), pos("postcode", 0.9), pos("npa", 0.9),
            pos("city", 0.7), pos("town", 0.7), pos("location", 0.6), pos("deliver", 0.7),
            pos("ship", 0.7), pos("mail to", 0.8), pos("residence", 0.8), pos("domicile", 0.8),
        ],
        "fr": [
            pos("adresse"), pos("rue", 0.9), pos("avenue", 0.8), pos("chemin", 0.8),
            pos("boulevard", 0.8), pos("route", 0.7), pos("postal", 0.8), pos("code postal"),
            pos("code", 0.6), pos("npa"), pos("ville", 0.7), pos("localité", 0.7),
            pos("livrer", 0.7), pos("livraison", 0.7), pos("domicile", 0.8),
            pos("résidence", 0.8),
        ],
        "de": [
            pos("adresse"), pos("strasse", 0.9), pos("straße", 0.9), pos("weg", 0.8),
            pos("platz", 0.8), pos("allee", 0.8), pos("postleitzahl"), pos("plz"),
            pos("stadt", 0.7), pos("ort", 0.7), pos("ortschaft", 0.7), pos("liefern", 0.7),
            pos("lieferung", 0.7), pos("wohnort", 0.8), pos("anschrift", 0.9),
        ],
    },
    "IBAN": {
        "en": [
            pos("iban"), pos("account", 0.8), pos("bank", 0.8), pos("bank account"),
            pos("transfer", 0.7), pos("payment", 0.7), pos("swift", 0.8), pos("bic", 0.8),
            pos("wire", 0.7), pos("deposit", 0.7),
        ],
        "fr": [
            pos("iban"), pos("compte", 0.8), pos("compte bancaire"), pos("banque", 0.8),
            pos("virement", 0.7), pos("paiement", 0.7), pos("swift", 0.8), pos("bic", 0.8),
            pos("versement", 0.7),
        ],
        "de": [
            pos("iban"), pos("konto", 0.8), pos("bankkonto"), pos("bank", 0.8),
            pos("überweisung", 0.7), pos("zahlung", 0.7), pos("swift", 0.8), pos("bic", 0.8),
            pos("einzahlung", 0.7),
        ],
    },
    "SWISS_AVS": {
        "en": [
            pos("avs"), pos("ahv"), pos("social security", 0.9), pos("social insurance", 0.9),
            pos("insurance number", 0.8), pos("ssn", 0.7),
        ],
        "fr": [
            pos("avs"), pos("numéro avs"), pos("n° avs"), pos("sécurité sociale", 0.9),
            pos("assurance sociale", 0.9), pos("numéro d'assurance", 0.8),
        ],
        "de": [
            pos("ahv"), pos("ahv-nummer"), pos("ahv-nr"), pos("sozialversicherung", 0.9),
            pos("versicherungsnummer", 0.8), pos("svn", 0.7),
        ],
    },
    "DATE": {
        "en": [
            pos("date", 0.8), pos("born", 0.9), pos("birth", 0.9), pos("birthday", 0.9),
            pos("dob"), pos("date of birth"), pos("issued", 0.7), pos("expires", 0.7),
            pos("expiry", 0.7), pos("valid", 0.6), pos("effective", 0.6),
            neg("invoice date", 0.4), neg("order date", 0.4), neg("due date", 0.4),
        ],
        "fr": [
            pos("date", 0.8), pos("né", 0.9), pos("née", 0.9), pos("naissance"),
            pos("date de naissance"), pos("émis", 0.7), pos("expire", 0.7),
            pos("expiration", 0.7), pos("valide", 0.6),
            neg("date de facture", 0.4), neg("date de commande", 0.4), neg("échéance", 0.4),
        ],
        "de": [
            pos("datum", 0.8), pos("geboren", 0.9), pos("geburt", 0.9), pos("geburtsdatum"),
            pos("ausgestellt", 0.7), pos("gültig", 0.6), pos("ablauf", 0.7),
            neg("rechnungsdatum", 0.4), neg("bestelldatum", 0.4), neg("fälligkeitsdatum", 0.4),
        ],
    },
    "ORGANIZATION": {
        "en": [
            pos("company", 0.9), pos("corporation", 0.9), pos("organization", 0.9),
            pos("organisation", 0.9), pos("firm", 0.8), pos("enterprise", 0.8),
            pos("business", 0.7), pos("ltd", 0.9), pos("inc", 0.9), pos("corp", 0.9),
            pos("llc", 0.9), pos("plc", 0.9),
        ],
        "fr": [
            pos("société", 0.9), pos("entreprise", 0.9), pos("organisation", 0.9),
            pos("firme", 0.8), pos("sa", 0.9), pos("sàrl", 0.9), pos("sarl", 0.9), pos("cie", 0.8),
        ],
        "de": [
            pos("firma", 0.9), pos("unternehmen", 0.9), pos("gesellschaft", 0.9),
            pos("organisation", 0.9), pos("gmbh"), pos("ag"), pos("kg", 0.9), pos("ohg", 0.9),
        ],
    },
    "VAT_NUMBER": {
        "en": [pos("vat"), pos("vat number"), pos("tax id", 0.9), pos("uid", 0.9), pos("company id", 0.7)],
        "fr": [pos("tva"), pos("no tva"), pos("numéro tva"), pos("ide", 0.9), pos("uid", 0.9)],
        "de": [pos("mwst"), pos("mwst-nr"), pos("ust-idnr"), pos("uid", 0.9), pos("steuernummer", 0.8)],
    },
    "PAYMENT_REF": {
        "en": [pos("reference"), pos("payment reference"), pos("qr reference", 0.9)],
        "fr": [pos("référence"), pos("référence de paiement"), pos("bvr", 0.9)],
        "de": [pos("referenz"), pos("referenznummer"), pos("zahlungsreferenz"), pos("esr", 0.9)],
    },
}

# Entity types that share another type's vocabulary
CONTEXT_TYPE_ALIASES: Dict[str, str] = {
    "PERSON": "PERSON_NAME",
    "SALUTATION_NAME": "PERSON_NAME",
    "SWISS_ADDRESS": "ADDRESS",
    "EU_ADDRESS": "ADDRESS",
    "VENDOR_NAME": "ORGANIZATION",
    "QR_REFERENCE": "PAYMENT_REF",
}


# ============================================================================
# API Functions
# ============================================================================

def _resolve(entity_type: str) -> str:
    key = str(entity_type).upper()
    return CONTEXT_TYPE_ALIASES.get(key, key)


def get_context_words(entity_type: str, language: str) -> List[ContextWord]:
    """
    Get context words for an entity type in one language.

    Args:
        entity_type: Entity type (aliases such as PERSON resolve to PERSON_NAME)
        language: Language code (en/fr/de)

    Returns:
        A copy of the word list, empty if the type or language is unknown
    """
    type_words = CONTEXT_WORDS.get(_resolve(entity_type))
    if not type_words:
        return []
    return list(type_words.get(language.lower(), []))


def get_all_context_words(entity_type: str) -> List[ContextWord]:
    """Context words for an entity type across all languages, deduplicated by word."""
    type_words = CONTEXT_WORDS.get(_resolve(entity_type))
    if not type_words:
        return []
    seen = set()
    words = []
    for lang_words in type_words.values():
        for cw in lang_words:
            key = cw.word.lower()
            if key not in seen:
                seen.add(key)
                words.append(cw)
    return words


def get_positive_context_words(entity_type: str, language: str) -> List[ContextWord]:
    return [cw for cw in get_context_words(entity_type, language) if cw.is_positive]


def get_negative_context_words(entity_type: str, language: str) -> List[ContextWord]:
    return [cw for cw in get_context_words(entity_type, language) if not cw.is_positive]


def get_supported_entity_types() -> List[str]:
    return list(CONTEXT_WORDS)


def get_supported_languages(entity_type: str) -> List[str]:
    type_words = CONTEXT_WORDS.get(_resolve(entity_type))
    return list(type_words) if type_words else []


def get_metadata() -> Dict[str, str]:
    return dict(CONTEXT_WORDS_METADATA)
