#!/usr/bin/env python3
"""
Seed test data for trying the classification engine locally.

Creates restaurants (leads) with customer comments covering key scenarios:
  1. Leakage + temperature complaints on a high-potential lead (DIAMANTE)
  2. Three or more complaint categories (DIAMANTE - CRÍTICO)
  3. Temperature-only complaints on a medium lead (OURO)
  4. Clean comments on a high-potential lead (PRATA after analysis)
  5. No comments at all
  6. A lead already closed (auto-qualify must leave it alone)

Usage:
    python scripts/seed_test_data.py          # seed all scenarios
    python scripts/seed_test_data.py --clear  # wipe seeded data first

Requires: DATABASE_URL set (or defaults to sqlite:///local.db).
"""
import sys
import os
import argparse

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from leadsignal.database import get_session, engine, Base
from leadsignal.models import Lead, Comment, Analysis, Notification


# ── Fake restaurants ─────────────────────────────────────────────────────────

# Prefix for seeded names so we can clear them
SEED_PREFIX = '[seed] '

RESTAURANTS = [
    {
        'name': 'Cantina da Nonna', 'potential': 'ALTÍSSIMO', 'status': 'A Analisar',
        'comments': ['O molho vazou todo na sacola', 'Chegou fria, mas gostosa'],
    },
    {
        'name': 'Burger do Zé', 'potential': 'ALTO', 'status': 'Contatado',
        'comments': ['vazou', 'chegou fria', 'embalagem rasgada', 'lanche todo revirado e bagunçado'],
    },
    {
        'name': 'Sushi Kaze', 'potential': 'MÉDIO', 'status': None,
        'comments': ['O temaki estava morno', 'entrega rápida'],
    },
    {
        'name': 'Pizzaria Bella', 'potential': 'ALTO', 'status': 'A Analisar',
        'comments': ['Ótimo atendimento', 'Pizza deliciosa, recomendo'],
    },
    {
        'name': 'Açaí Point', 'potential': 'BAIXO', 'status': 'A Analisar',
        'comments': [],
    },
    {
        'name': 'Churrascaria Gaúcha', 'potential': 'ALTÍSSIMO', 'status': 'Fechado',
        'comments': ['A marmita chegou aberta e derramou', 'carne fria'],
    },
]


def clear_seeded(session):
    """Delete seeded leads and everything attached to them."""
    leads = session.query(Lead).filter(Lead.name.like(SEED_PREFIX + '%')).all()
    ids = [lead.id for lead in leads]
    if ids:
        session.query(Comment).filter(Comment.lead_id.in_(ids)).delete(synchronize_session=False)
        session.query(Analysis).filter(Analysis.lead_id.in_(ids)).delete(synchronize_session=False)
        for lead in leads:
            session.delete(lead)
    session.query(Notification).delete(synchronize_session=False)
    session.commit()
    print(f"Cleared {len(ids)} seeded leads")


def seed(session):
    for r in RESTAURANTS:
        lead = Lead(name=SEED_PREFIX + r['name'], sales_potential=r['potential'], status=r['status'])
        session.add(lead)
        session.flush()
        for text in r['comments']:
            session.add(Comment(lead_id=lead.id, content=text))
        print(f"  + {lead.name} ({r['potential']}, {len(r['comments'])} comments)")
    session.commit()


def main():
    parser = argparse.ArgumentParser(description='Seed local leads and comments')
    parser.add_argument('--clear', action='store_true', help='Remove seeded data before seeding')
    args = parser.parse_args()

    # Local convenience only — production schema is managed by Alembic
    Base.metadata.create_all(engine)

    session = get_session()
    try:
        if args.clear:
            clear_seeded(session)
        print("Seeding leads...")
        seed(session)
        print("Done. Run a sweep with: POST /api/reprocess")
    finally:
        session.close()


if __name__ == '__main__':
    main()
