"""
Context factor analysis for detected entities.

Four factors describe how well an entity is supported by its surroundings:

    label_keywords    (0.25) a label such as "IBAN" or "Tel" precedes it
    related_entities  (0.30) an entity of a related type sits nearby
    document_position (0.15) it appears where that type usually appears
    repetition        (0.20) the same text/type occurs elsewhere

The context score is the matched weight divided by the total weight. The
analysis is recorded on Entity.context; confidence changes come from the
ContextEnhancer.
"""

import logging
from typing import Dict, List, Tuple

from .context_enhancer import contains_word
from .entities import ContextAnalysis, ContextFactor, Entity, EntityType, base_type

logger = logging.getLogger(__name__)

T = EntityType

LABEL_KEYWORDS: Dict[EntityType, Tuple[str, ...]] = {
    T.PERSON: ("name", "nom", "vorname", "nachname", "herr", "frau", "mr", "mrs", "ms",
               "dr", "prof", "monsieur", "madame"),
    T.ORGANIZATION: ("firma", "company", "société", "gmbh", "ag", "sa", "sàrl", "ltd", "inc", "corp"),
    T.LOCATION: ("ort", "location", "lieu", "city", "ville", "stadt"),
    T.ADDRESS: ("adresse", "address", "anschrift", "wohnort", "domicile", "strasse", "rue", "street"),
    T.SWISS_ADDRESS: ("adresse", "address", "anschrift", "wohnort", "domicile", "schweiz", "suisse"),
    T.EU_ADDRESS: ("adresse", "address", "anschrift", "deutschland", "france", "österreich"),
    T.SWISS_AVS: ("avs", "ahv", "sozialversicherung", "assurance", "versicherungsnummer", "numéro avs"),
    T.IBAN: ("iban", "konto", "compte", "account", "bankverbindung", "coordonnées bancaires"),
    T.PHONE: ("tel", "telefon", "téléphone", "phone", "mobile", "handy", "natel", "portable", "fax"),
    T.EMAIL: ("email", "e-mail", "mail", "courriel"),
    T.DATE: ("datum", "date", "geboren", "geburtsdatum", "né", "naissance", "born", "birthday"),
    T.AMOUNT: ("betrag", "montant", "amount", "total", "summe", "prix", "price", "chf", "eur"),
    T.VAT_NUMBER: ("mwst", "tva", "iva", "vat", "ust", "uid", "steuer"),
    T.INVOICE_NUMBER: ("rechnung", "facture", "invoice", "rechnungsnummer", "numéro", "ref", "beleg"),
    T.PAYMENT_REF: ("referenz", "référence", "reference", "zahlungsreferenz", "qr"),
    T.QR_REFERENCE: ("qr", "referenz", "référence", "reference"),
    T.SENDER: ("absender", "expéditeur", "sender", "from", "von"),
    T.RECIPIENT: ("empfänger", "destinataire", "recipient", "to", "an"),
    T.SALUTATION_NAME: ("dear", "cher", "chère", "sehr geehrte", "sehr geehrter", "liebe"),
    T.SIGNATURE: ("unterschrift", "signature", "signatur", "signed", "signé"),
    T.LETTER_DATE: ("datum", "date", "le"),
    T.REFERENCE_LINE: ("betreff", "objet", "re", "subject", "betrifft"),
    T.PARTY: ("partei", "partie", "party", "vertragspartner"),
    T.AUTHOR: ("autor", "auteur", "author", "verfasser"),
    T.VENDOR_NAME: ("lieferant", "fournisseur", "vendor", "supplier"),
}

RELATED_TYPES: Dict[EntityType, Tuple[EntityType, ...]] = {
    T.PERSON: (T.PHONE, T.EMAIL, T.ADDRESS, T.DATE),
    T.ORGANIZATION: (T.PHONE, T.EMAIL, T.ADDRESS, T.VAT_NUMBER, T.IBAN),
    T.LOCATION: (T.ADDRESS,),
    T.ADDRESS: (T.PERSON, T.ORGANIZATION, T.PHONE),
    T.SWISS_ADDRESS: (T.PERSON, T.ORGANIZATION, T.PHONE, T.SWISS_AVS),
    T.EU_ADDRESS: (T.PERSON, T.ORGANIZATION, T.PHONE),
    T.SWISS_AVS: (T.PERSON, T.DATE, T.ADDRESS),
    T.IBAN: (T.PERSON, T.ORGANIZATION, T.AMOUNT),
    T.PHONE: (T.PERSON, T.ORGANIZATION, T.ADDRESS, T.EMAIL),
    T.EMAIL: (T.PERSON, T.ORGANIZATION, T.PHONE),
    T.DATE: (T.PERSON, T.INVOICE_NUMBER, T.AMOUNT),
    T.AMOUNT: (T.DATE, T.INVOICE_NUMBER, T.IBAN, T.VAT_NUMBER),
    T.VAT_NUMBER: (T.ORGANIZATION, T.AMOUNT, T.INVOICE_NUMBER),
    T.INVOICE_NUMBER: (T.DATE, T.AMOUNT, T.ORGANIZATION),
    T.PAYMENT_REF: (T.AMOUNT, T.IBAN),
    T.QR_REFERENCE: (T.AMOUNT, T.IBAN, T.PAYMENT_REF),
    T.SENDER: (T.ADDRESS, T.PHONE, T.EMAIL, T.ORGANIZATION),
    T.RECIPIENT: (T.ADDRESS, T.PERSON, T.SALUTATION_NAME),
    T.SALUTATION_NAME: (T.RECIPIENT, T.PERSON),
    T.SIGNATURE: (T.PERSON, T.LETTER_DATE),
    T.LETTER_DATE: (T.SIGNATURE, T.REFERENCE_LINE),
    T.REFERENCE_LINE: (T.LETTER_DATE, T.RECIPIENT),
    T.PARTY: (T.SIGNATURE, T.ORGANIZATION, T.PERSON),
    T.AUTHOR: (T.PERSON, T.ORGANIZATION),
    T.VENDOR_NAME: (T.ORGANIZATION, T.VAT_NUMBER, T.IBAN),
}

# Unusual in the first/last 10% of a document
BODY_TYPES = frozenset({T.SWISS_AVS, T.IBAN, T.PAYMENT_REF})
# Expected in the first 10% (letterheads)
HEADER_TYPES = frozenset({T.ADDRESS, T.SWISS_ADDRESS, T.EU_ADDRESS, T.PHONE, T.EMAIL})

FACTOR_WEIGHTS = {
    "label_keywords": 0.25,
    "related_entities": 0.3,
    "document_position": 0.15,
    "repetition": 0.2,
}


def _lookup(table, entity_type: EntityType):
    if entity_type in table:
        return table[entity_type]
    return table.get(base_type(entity_type), ())


class ContextScorer:
    def __init__(self, window_size: int = 50):
        self.window_size = window_size

    def analyze(self, entity: Entity, text: str, entities: List[Entity]) -> ContextAnalysis:
        factors = [
            self.label_keywords(entity, text),
            self.related_entities(entity, entities),
            self.document_position(entity, text),
            self.repetition(entity, entities),
        ]
        return ContextAnalysis(score=self.score(factors), factors=factors)

    @staticmethod
    def score(factors: List[ContextFactor]) -> float:
        total = sum(f.weight for f in factors)
        if total == 0:
            return 0.5
        return sum(f.weight for f in factors if f.matched) / total

    def label_keywords(self, entity: Entity, text: str) -> ContextFactor:
        weight = FACTOR_WEIGHTS["label_keywords"]
        keywords = _lookup(LABEL_KEYWORDS, entity.type)
        if not keywords:
            return ContextFactor("label_keywords", weight, False, "No label keywords defined for this type")

        before = text[max(0, entity.start - self.window_size):entity.start].lower()
        for keyword in keywords:
            if contains_word(before, keyword):
                return ContextFactor("label_keywords", weight, True, f'Found keyword "{keyword}" nearby')
        return ContextFactor("label_keywords", weight, False, "No label keywords found")

    def related_entities(self, entity: Entity, entities: List[Entity]) -> ContextFactor:
        weight = FACTOR_WEIGHTS["related_entities"]
        related = {base_type(t) for t in _lookup(RELATED_TYPES, entity.type)}
        if not related:
            return ContextFactor("related_entities", weight, False, "No related types defined")

        nearby = []
        for other in entities:
            if other.id == entity.id or base_type(other.type) not in related:
                continue
            distance = min(abs(other.start - entity.end), abs(entity.start - other.end))
            if distance <= self.window_size:
                nearby.append(other.type.value)

        if nearby:
            return ContextFactor("related_entities", weight, True,
                                 f"Found {len(nearby)} related entities nearby ({', '.join(nearby)})")
        return ContextFactor("related_entities", weight, False, "No related entities nearby")

    @staticmethod
    def document_position(entity: Entity, text: str) -> ContextFactor:
        weight = FACTOR_WEIGHTS["document_position"]
        position = entity.start / len(text) if text else 0.0
        is_header = position < 0.1
        is_footer = position > 0.9

        if entity.type in BODY_TYPES and (is_header or is_footer):
            zone = "header" if is_header else "footer"
            return ContextFactor("document_position", weight, False,
                                 f"{entity.type.value} found in {zone} (unusual position)")
        if entity.type in HEADER_TYPES and is_header:
            return ContextFactor("document_position", weight, True,
                                 f"{entity.type.value} found in header (expected position)")
        return ContextFactor("document_position", weight, True, "Position neutral")

    @staticmethod
    def repetition(entity: Entity, entities: List[Entity]) -> ContextFactor:
        weight = FACTOR_WEIGHTS["repetition"]
        count = sum(1 for e in entities if e.id != entity.id and e.text == entity.text and e.type == entity.type)
        if count:
            return ContextFactor("repetition", weight, True, f"Entity repeated {count + 1} times in document")
        return ContextFactor("repetition", weight, False, "Entity appears once")
