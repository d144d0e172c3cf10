"""Small in-memory wine list for the console demo and local development."""

from sommelier.schemas.wine_schema import CatalogWine

SEED_WINES: list[CatalogWine] = [
    CatalogWine(
        id=1,
        name="Barolo Cannubi",
        winery="Marchesi di Barolo",
        region="Piedmont",
        country="Italy",
        grape_variety="Nebbiolo",
        vintage=2018,
        wine_type="red",
        style="Full-bodied",
        retail_price="45.00",
        stock_quantity=24,
        tasting_notes="Rose petal, tar, and sour cherry with firm tannins.",
        food_pairings=["truffle risotto", "braised beef"],
    ),
    CatalogWine(
        id=2,
        name="Château Margaux",
        winery="Château Margaux",
        region="Bordeaux",
        country="France",
        grape_variety="Cabernet Sauvignon",
        vintage=2015,
        wine_type="red",
        style="Full-bodied",
        retail_price="650.00",
        stock_quantity=3,
        tasting_notes="Violet, cassis, and graphite; very long finish.",
        food_pairings=["lamb", "aged cheeses"],
    ),
    CatalogWine(
        id=3,
        name="Sancerre Les Monts Damnés",
        winery="Domaine Vacheron",
        region="Loire Valley",
        country="France",
        grape_variety="Sauvignon Blanc",
        vintage=2022,
        wine_type="white",
        style="Crisp",
        retail_price="32.00",
        stock_quantity=40,
        tasting_notes="Flint, citrus zest, and gooseberry.",
        food_pairings=["goat's cheese", "oysters"],
    ),
    CatalogWine(
        id=4,
        name="Whispering Angel",
        winery="Château d'Esclans",
        region="Provence",
        country="France",
        grape_variety="Grenache",
        vintage=2023,
        wine_type="rose",
        style="Dry",
        retail_price="21.50",
        stock_quantity=60,
        tasting_notes="Strawberry, peach, and a mineral finish.",
        food_pairings=["salads", "grilled fish"],
    ),
    CatalogWine(
        id=5,
        name="Nyetimber Classic Cuvée",
        winery="Nyetimber",
        region="West Sussex",
        country="England",
        grape_variety="Chardonnay",
        wine_type="sparkling",
        style="Brut",
        retail_price="39.99",
        stock_quantity=0,
        tasting_notes="Baked apple, brioche, and honey.",
        food_pairings=["smoked salmon"],
    ),
    CatalogWine(
        id=6,
        name="Barolo Riserva Monfortino",
        winery="Giacomo Conterno",
        region="Piedmont",
        country="Italy",
        grape_variety="Nebbiolo",
        vintage=2014,
        wine_type="red",
        style="Full-bodied",
        retail_price="890.00",
        stock_quantity=2,
    ),
    CatalogWine(
        id=7,
        name="Tokaji Aszú 5 Puttonyos",
        winery="Royal Tokaji",
        region="Tokaj",
        country="Hungary",
        grape_variety="Furmint",
        vintage=2017,
        wine_type="dessert",
        style="Sweet",
        retail_price="38.00",
        stock_quantity=12,
        food_pairings=["foie gras", "blue cheese"],
    ),
]
