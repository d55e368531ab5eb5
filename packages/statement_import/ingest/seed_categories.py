"""Seeder for the default (Dutch) category catalog.

The catalog order is the keyword-matching order: the first category whose
keyword occurs in a description wins, so more specific categories come first
within each type.
"""

from __future__ import annotations

from db.models.finance import StCategory
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..logging_setup import get_logger
from ..models import Category

_logger = get_logger("statement_import.ingest.seed_categories")

# (name, type, comma-separated keywords). Keywords match as substrings, so
# two-letter brand codes ("ah", "ns", "bp") are spelled out in full.
DEFAULT_CATEGORIES: tuple[tuple[str, str, str], ...] = (
    (
        "Boodschappen",
        "expense",
        "albert heijn,ah to go,jumbo,lidl,aldi,plus supermarkt,dirk van den broek,supermarkt,"
        "spar,coop",
    ),
    ("Huur/Hypotheek", "expense", "huur,hypotheek,woningcorporatie"),
    (
        "Energie",
        "expense",
        "vattenfall,eneco,essent,greenchoice,energie,gasrekening,elektra,stroom",
    ),
    (
        "Transport",
        "expense",
        "ns groep,ns reizigers,ov-chipkaart,shell,bp station,tango,tinq,benzine,parkeren,anwb",
    ),
    (
        "Verzekeringen",
        "expense",
        "zorgverzekering,inshared,centraal beheer,nationale nederlanden,aegon,achmea",
    ),
    ("Abonnementen", "expense", "netflix,spotify,kpn,t-mobile,vodafone,ziggo,disney,amazon prime"),
    ("Uit eten", "expense", "restaurant,thuisbezorgd,uber eats,deliveroo,mcdonalds,dominos"),
    ("Kleding", "expense", "h&m,zara,primark,zalando,bol.com kleding,wehkamp"),
    ("Gezondheid", "expense", "apotheek,huisarts,tandarts,fysiotherapie,ziekenhuis"),
    ("Sport", "expense", "sportschool,basic-fit,fitness,gym"),
    ("Entertainment", "expense", "bioscoop,pathe,concert,festival,museum"),
    ("Cadeaus", "expense", "cadeau,gift,bol.com,amazon"),
    ("Onderwijs", "expense", "studie,opleiding,boeken,cursus,duo"),
    ("Huishouden", "expense", "ikea,action nederland,blokker,hema,gamma,praxis"),
    ("Overig uitgaven", "expense", ""),
    ("Salaris", "income", "salaris,loon,werkgever"),
    ("Freelance", "income", "freelance,factuur,opdracht"),
    ("Toeslagen", "income", "belastingdienst,toeslag,zorgtoeslag,huurtoeslag,kinderbijslag"),
    ("Beleggingen", "income", "dividend,belegging,rente,spaarrente"),
    ("Overig inkomsten", "income", ""),
)


def seed_default_categories(session: Session) -> int:
    """Insert missing default categories (matched by name); return how many were added."""

    existing = set(session.scalars(select(StCategory.name)))
    added = 0
    for order, (name, cat_type, keywords) in enumerate(DEFAULT_CATEGORIES):
        if name in existing:
            continue
        session.add(
            StCategory(
                name=name,
                type=cat_type,
                keywords=list(Category.parse_keywords(keywords)),
                sort_order=order,
            )
        )
        added += 1
    session.flush()
    _logger.info("seed_categories:done added=%d total=%d", added, len(DEFAULT_CATEGORIES))
    return added


__all__ = ["DEFAULT_CATEGORIES", "seed_default_categories"]
