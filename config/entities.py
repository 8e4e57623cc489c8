"""
Tracked hotels.

Each hotel gets its own review table; analysis tables are derived from table_id.
"""

ENTITIES = [
    {
        "id": "291dac76-4fe2-3336-9c5d-709261abf797",
        "name": "Reischlhof",
        "partner_id": "1798",
        "table_id": "Reischlhof",
    },
    {
        "id": "6a4eafbc-97a7-31dd-9d02-d1bb9dc0b254",
        "name": "Riedlberg",
        "partner_id": "1798",
        "table_id": "Riedlberg",
    },
    {
        "id": "faaad7bb-bd76-396c-af45-d00a661e4e53",
        "name": "Obermueller",
        "partner_id": "1798",
        "table_id": "Obermueller",
    },
    {
        "id": "cb227542-f4e1-3431-963e-d6555dd926af",
        "name": "Bierhotel",
        "partner_id": "1798",
        "table_id": "Bierhotel",
    },
    {
        "id": "5baafa11-117b-3ae6-b8c1-122bf7c8b04b",
        "name": "Brunnerhof",
        "partner_id": "1798",
        "table_id": "Brunnerhof",
    },
    {
        "id": "59bcddbc-2721-3961-a258-1e8c70140867",
        "name": "Jagdhof",
        "partner_id": "1798",
        "table_id": "Jagdhof",
    },
    {
        "id": "d73f9af8-e34a-386c-b3fb-8b463302c6d3",
        "name": "Waldeck",
        "partner_id": "1798",
        "table_id": "Waldeck",
    },
    {
        "id": "e870c59d-4507-3257-8b01-5dc487621b8e",
        "name": "Ulrichshof",
        "partner_id": "1798",
        "table_id": "Ulrichshof",
    },
]
