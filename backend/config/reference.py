"""
Reference lists shared by validation and reporting
"""

REGIONS = [
    "Dakar", "Thiès", "Saint-Louis", "Diourbel", "Louga", "Fatick",
    "Kaolack", "Kolda", "Ziguinchor", "Tambacounda", "Kaffrine",
    "Kédougou", "Matam", "Sédhiou",
]

VIOLENCE_TYPES = [
    "Violence physique", "Violence sexuelle", "Violence psychologique",
    "Violence économique", "Mariage forcé", "Mutilation génitale féminine",
    "Harcèlement", "Cyberviolence", "Autre",
]

SERVICES = [
    "Écoute psychologique", "Hébergement d'urgence", "Soins médicaux",
    "Assistance juridique", "Accompagnement social", "Formation professionnelle",
    "Aide financière", "Médiation familiale", "Groupe de parole",
]

# Lower-cased forms accepted for victim_gender
GENDERS = ["masculin", "féminin", "feminin", "autre", "femme", "homme"]

MAX_DESCRIPTION_LENGTH = 5000
MAX_AGE = 150
