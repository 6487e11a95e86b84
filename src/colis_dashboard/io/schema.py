# src/colis_dashboard/io/schema.py
from __future__ import annotations


# Import workbook: provider key -> accepted column headers, first wins
IMPORT_COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "reference": ("Référence", "Reference"),
    "client": ("Client",),
    "adresse": ("Adresse",),
    "gouvernorat": ("Gouvernorat",),
    "ville": ("Ville",),
    "tel1": ("Téléphone 1", "Tel1"),
    "tel2": ("Téléphone 2", "Tel2"),
    "designation": ("Désignation", "Designation"),
    "prix": ("Prix",),
    "nb_pieces": ("Nombre de pièces", "Nb_pieces"),
    "type": ("Type",),
    "commentaire": ("Commentaire",),
    "echange": ("Échange", "Echange"),
    "cod": ("COD",),
    "poids": ("Poids",),
}

# Rows missing any of these are rejected (labels as shown to the user)
REQUIRED_IMPORT_FIELDS: tuple[tuple[str, str], ...] = (
    ("client", "Client"),
    ("adresse", "Adresse"),
    ("gouvernorat", "Gouvernorat"),
    ("ville", "Ville"),
    ("tel1", "Téléphone 1"),
)

# Header order of the downloadable import template
IMPORT_TEMPLATE_COLUMNS: list[str] = [
    aliases[0] for aliases in IMPORT_COLUMN_ALIASES.values()
]

IMPORT_TEMPLATE_ROWS: list[dict[str, object]] = [
    {
        "Référence": "REF-001",
        "Client": "Mohamed Salah",
        "Adresse": "12 Rue de la République",
        "Gouvernorat": "Tunis",
        "Ville": "Tunis",
        "Téléphone 1": "22582700",
        "Téléphone 2": "22555556",
        "Désignation": "Article test",
        "Prix": 50.5,
        "Nombre de pièces": 1,
        "Type": "VO",
        "Commentaire": "À livrer le matin",
        "Échange": 0,
        "COD": 0,
        "Poids": 0.5,
    },
    {
        "Référence": "REF-002",
        "Client": "Ahmed Ben Ali",
        "Adresse": "25 Avenue Habib Bourguiba",
        "Gouvernorat": "Sfax",
        "Ville": "Sfax Ville",
        "Téléphone 1": "74222333",
        "Téléphone 2": "",
        "Désignation": "Livres",
        "Prix": 35,
        "Nombre de pièces": 2,
        "Type": "EC",
        "Commentaire": "",
        "Échange": 1,
        "COD": 10,
        "Poids": 1.2,
    },
]

# Listing export: ParcelRecord attribute -> column header, in output order
EXPORT_COLUMNS: dict[str, str] = {
    "tracking_code": "Code barre",
    "reference": "Référence",
    "parcel_number": "N° colis",
    "status": "Etat",
    "client_name": "Client",
    "address": "Adresse",
    "province": "Gouvernorat",
    "city": "Ville",
    "phone1": "Téléphone 1",
    "phone2": "Téléphone 2",
    "designation": "Désignation",
    "piece_count": "Nombre de pièces",
    "price": "Prix",
    "cod_amount": "COD",
    "weight": "Poids",
    "type": "Type",
    "is_exchange": "Échange",
    "creation_date": "Date création",
    "pickup_date": "Date enlèvement",
    "delivery_date": "Date livraison",
    "courier_name": "Livreur",
    "courier_phone": "Tél. livreur",
    "last_anomaly_reason": "Dernière anomalie",
    "delivery_fee": "Frais livraison",
    "return_fee": "Frais retour",
    "comment": "Commentaire",
}

EXPORT_SHEET_NAME = "Colis"

# Text columns Excel would otherwise turn into numbers
TEXT_EXPORT_COLUMNS: tuple[str, ...] = (
    "Code barre", "Référence", "N° colis", "Téléphone 1", "Téléphone 2", "Tél. livreur",
)
