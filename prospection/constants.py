"""
Product reference tables.

The three CEE product lines sold by the sales team:
- destratification: ceiling fans pushing warm air back down in tall buildings
- pression: hydraulic pressure management for collective heating networks
- matelas_isolants: removable insulation jackets for industrial pipework
"""

# Display names
PRODUCT_LABELS = {
    "destratification": "Destratification",
    "pression": "Régulation de pression",
    "matelas_isolants": "Matelas isolants",
}


# Activity-code prefixes that make a prospect relevant for each product
PERTINENT_NAF_PREFIXES = {
    "destratification": [
        "47.11",  # Supermarchés
        "47.19",  # Grands magasins
        "52.10",  # Entreposage
        "52.24",  # Manutention
        "56.10",  # Restaurants
        "93.11",  # Installations sportives
        "10.",  # Industries alimentaires
        "28.",  # Fabrication de machines
        "01.",  # Agriculture
    ],
    "pression": [
        "86.10",  # Activités hospitalières
        "87.",  # Hébergement médico-social
        "55.",  # Hébergement
        "85.",  # Enseignement
        "91.04",  # Jardins botaniques et zoologiques
        "93.",  # Activités sportives
    ],
    "matelas_isolants": [
        "24.",  # Métallurgie
        "25.",  # Produits métalliques
        "20.",  # Industrie chimique
        "23.",  # Autres produits minéraux
        "10.",  # Industries alimentaires
        "28.",  # Fabrication de machines
        "29.",  # Industrie automobile
        "30.",  # Autres matériels de transport
    ],
}


PERTINENCE_ORDER = {"très haute": 3, "haute": 2, "moyenne": 1}

# Most promising activity codes per product, shown to sales as targeting hints
RELEVANT_CODES = {
    "destratification": [
        ("47.11F", "très haute", "Hypermarchés de grande hauteur"),
        ("47.11D", "très haute", "Supermarchés à grands volumes"),
        ("52.10A", "très haute", "Entrepôts frigorifiques de plus de 10 m"),
        ("52.10B", "très haute", "Entrepôts de plus de 10 m"),
        ("93.11Z", "très haute", "Salles de sport de plus de 8 m"),
        ("56.10A", "haute", "Cuisines hautes avec zones chaudes"),
        ("56.10C", "haute", "Cuisines avec zones chaudes"),
        ("56.29A", "haute", "Cuisines collectives"),
        ("10.11Z", "haute", "Usines agroalimentaires"),
        ("10.13A", "haute", "Usines agroalimentaires"),
        ("10.71A", "haute", "Fours industriels sous grande hauteur"),
        ("41.20A", "moyenne", "Hangars de chantier"),
        ("41.20B", "moyenne", "Hangars de chantier"),
    ],
    "pression": [
        ("86.10Z", "très haute", "Hôpitaux en chauffage collectif"),
        ("87.10A", "très haute", "EHPAD en chauffage central"),
        ("55.10Z", "très haute", "Hôtels en chauffage central"),
        ("87.20A", "haute", "Établissements en chauffage collectif"),
        ("87.30A", "haute", "Résidences en chauffage collectif"),
        ("55.20Z", "haute", "Résidences de tourisme chauffées"),
        ("85.31Z", "haute", "Collèges et lycées en chauffage collectif"),
        ("85.32Z", "haute", "Lycées professionnels en chauffage collectif"),
        ("85.42Z", "haute", "Universités en chauffage collectif"),
        ("68.20A", "haute", "Bailleurs sociaux en chauffage collectif"),
        ("93.13Z", "moyenne", "Centres sportifs chauffés"),
        ("68.20B", "moyenne", "Gestionnaires immobiliers"),
    ],
    "matelas_isolants": [
        ("24.10Z", "très haute", "Sites ICPE avec fours industriels"),
        ("24.51Z", "très haute", "Fonderies avec fours de plus de 1000 °C"),
        ("24.52Z", "très haute", "Fonderies avec fours industriels"),
        ("24.53Z", "très haute", "Fonderies avec fours"),
        ("20.11Z", "très haute", "Installations cryogéniques classées"),
        ("20.13A", "très haute", "Sites classés sensibles"),
        ("20.14Z", "très haute", "Chimie organique classée"),
        ("23.51Z", "très haute", "Cimenteries avec fours rotatifs"),
        ("25.11Z", "haute", "Ateliers de soudage classés"),
        ("20.15Z", "haute", "Procédés thermiques classés"),
        ("10.11Z", "haute", "Chambres froides industrielles"),
        ("10.13A", "haute", "Installations frigorifiques"),
        ("10.20Z", "haute", "Chambres froides"),
        ("10.51A", "haute", "Procédés chauds et froids"),
        ("23.52Z", "haute", "Fours à chaux et plâtre"),
        ("29.10Z", "haute", "Cabines de peinture"),
    ],
}


# CEE volume per m2 (kWh cumac), low and high estimate
CUMAC_PER_M2 = {
    "destratification": (50, 150),
    "pression": (30, 80),
    "matelas_isolants": (100, 300),
}

# High estimate for poorly rated buildings (energy class E to G)
CUMAC_PER_M2_POOR_BUILDING = {
    "destratification": 200,
    "matelas_isolants": 400,
}
