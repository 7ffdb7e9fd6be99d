from decimal import Decimal

# Subscription table fields
SUBSCRIPTION_STATUS = "Statut"
SUBSCRIPTION_NAME = "Nom de l'abonnement"
SUBSCRIPTION_BILLING_DAY = "Jour de facturation"
SUBSCRIPTION_START_DATE = "Date de début"
SUBSCRIPTION_SERVICES = "Services liés"
SUBSCRIPTION_CLIENT_ID = "ID_Sellsy_abonné"

# Service table fields
SERVICE_NAME = "Nom du service"
SERVICE_ACTIVE = "Actif"
SERVICE_CATEGORY = "Catégorie"
SERVICE_CLIENT_ID = "ID_Sellsy_abonné"
SERVICE_SELLSY_ID = "ID Sellsy"
SERVICE_PRICE = "Prix HT"
SERVICE_TAX_RATE = "Taux TVA"
SERVICE_TOTAL_OCCURRENCES = "Occurrences totales"
SERVICE_BILLED_MONTHS = "Mois facturés"
SERVICE_REMAINING_OCCURRENCES = "Occurrences restantes"

ACTIVE_STATUS = "Actif"
RECURRING_CATEGORY = "Abonnement"

DEFAULT_TAX_RATE = Decimal("20")
MIN_BILLING_DAY = 1
MAX_BILLING_DAY = 31
BILLING_TIMEZONE = "Europe/Paris"

PAYMENT_TERMS_ON_RECEIPT = "on_receipt"
INVOICE_SUBJECT_TEMPLATE = "Abonnement mensuel - {service_name}"
INVOICE_NOTE = (
    "Facture prélevée automatiquement à réception. Aucune action requise de votre part."
)
