"""Textos (en francés) enviados por el bot de WhatsApp."""

from typing import Optional

from immoalert.analysis.message_writer import format_amount
from immoalert.models import ConversationState, Criteria, PropertyType

PROPERTY_TYPE_NAMES = {
    PropertyType.HOUSE: "Maison",
    PropertyType.APARTMENT: "Appartement",
    PropertyType.BOTH: "Les deux",
}

COMMANDS_MENU = (
    "*Commandes disponibles :*\n"
    "• *MODIFIER* - Changer vos critères\n"
    "• *PAUSE* - Suspendre les alertes\n"
    "• *REPRENDRE* - Réactiver les alertes\n"
    "• *STATUT* - Voir vos critères actuels\n"
    "• *AIDE* - Obtenir de l'aide"
)

WELCOME = (
    "🏠 *Bienvenue sur ImmoAlert !*\n\n"
    "Je suis votre assistant immobilier personnel qui surveille les groupes Facebook pour vous.\n\n"
    "Je vais vous envoyer instantanément les annonces qui correspondent à vos critères !\n\n"
    "Pour commencer, dites-moi : cherchez-vous une *maison* 🏡 ou un *appartement* 🏢 ?\n\n"
    "(ou les deux - tapez \"les deux\")"
)

ASK_PROPERTY_TYPE = "Cherchez-vous une *maison* 🏡, un *appartement* 🏢 ou *les deux* ?"
RESTART_COLLECTION = "D'accord, modifions vos critères. " + ASK_PROPERTY_TYPE
REPROMPT_PROPERTY_TYPE = (
    "Je n'ai pas compris. Veuillez répondre \"maison\", \"appartement\" ou \"les deux\"."
)

ASK_PRICE = (
    "Parfait ! Quelle est votre *fourchette de prix* en {currency} ? 💰\n\n"
    "Exemples :\n"
    "• \"Entre 100000 et 300000\"\n"
    "• \"Maximum 500000\"\n"
    "• \"250 000\""
)
REPROMPT_PRICE = (
    "Je n'ai pas compris la fourchette de prix. Pouvez-vous reformuler ?\n"
    "Exemple : \"Entre 100000 et 300000\""
)

ASK_LOCATIONS = (
    "Super ! Dans quelle(s) *zone(s)* souhaitez-vous chercher ? 📍\n\n"
    "Exemples :\n"
    "• \"Cocody, Riviera\"\n"
    "• \"Plateau; Marcory\""
)
REPROMPT_LOCATIONS = "Veuillez indiquer au moins une zone de recherche. Exemple : \"Cocody\""

ASK_ROOMS = (
    "D'accord ! Combien de *pièces minimum* ? 🚪\n\n"
    "Exemples :\n"
    "• \"2 pièces minimum\"\n"
    "• \"Pas important\" (pour ignorer)"
)
REPROMPT_ROOMS = "Indiquez un nombre de pièces (ex : \"3\") ou \"pas important\"."

ASK_SURFACE = (
    "Surface minimum souhaitée ? 📐\n\n"
    "Exemples :\n"
    "• \"50m² ou plus\"\n"
    "• \"Pas important\" (pour ignorer)"
)
REPROMPT_SURFACE = "Indiquez une surface en m² (ex : \"50\") ou \"pas important\"."

CONFIRMED = (
    "✅ *Parfait ! Vos critères sont enregistrés.*\n\n"
    "🤖 Je surveille maintenant les groupes Facebook en temps réel.\n\n"
    "📱 Vous recevrez immédiatement les annonces correspondantes par WhatsApp !\n\n"
    + COMMANDS_MENU
)
REPROMPT_CONFIRMATION = (
    "Veuillez répondre par *OUI* pour confirmer ou *MODIFIER* pour changer vos critères."
)

PAUSED = (
    "⏸️ *Alertes suspendues.*\n\n"
    "Vous ne recevrez plus de notifications. Tapez *REPRENDRE* pour réactiver."
)
RESUMED = (
    "▶️ *Alertes réactivées !*\n\n"
    "Vous recevrez à nouveau les nouvelles annonces correspondant à vos critères."
)
PAUSED_REMINDER = (
    "Les alertes sont actuellement *suspendues*.\n\n"
    "Tapez *REPRENDRE* pour réactiver ou *STATUT* pour voir vos critères."
)

HELP = (
    "🔧 *Menu d'aide*\n\n"
    + COMMANDS_MENU
)
MAIN_MENU = "🔧 *Menu principal*\n\nQue souhaitez-vous faire ?\n\n" + COMMANDS_MENU
ACKNOWLEDGED = "Message reçu !\n\n" + COMMANDS_MENU

STATE_LABELS = {
    ConversationState.ACTIVE: "🟢 Actif",
    ConversationState.PAUSED: "⏸️ En pause",
}


def _budget(criteria: Criteria, currency: str) -> str:
    if not criteria.has_price_bounds:
        return "Non défini"
    low = format_amount(criteria.min_price) if criteria.min_price is not None else "Non défini"
    high = format_amount(criteria.max_price) if criteria.max_price is not None else "Non défini"
    return f"{low} - {high} {currency}"


def _criteria_lines(criteria: Criteria, currency: str) -> list[str]:
    rooms = f"{criteria.min_rooms}+" if criteria.min_rooms is not None else "Non spécifié"
    surface = (
        f"{criteria.min_surface:g}m²+" if criteria.min_surface is not None else "Non spécifiée"
    )
    return [
        f"🏠 Type : {PROPERTY_TYPE_NAMES[criteria.property_type]}",
        f"💰 Budget : {_budget(criteria, currency)}",
        f"📍 Zones : {', '.join(criteria.locations) or 'Non définies'}",
        f"🚪 Pièces : {rooms}",
        f"📐 Surface : {surface}",
    ]


def render_summary(criteria: Criteria, currency: str) -> str:
    """Resumen al terminar la recolección, pide confirmación."""
    lines = ["📋 *Récapitulatif de vos critères :*", ""]
    lines.extend(_criteria_lines(criteria, currency))
    lines.extend([
        "",
        "Tout est correct ? Répondez *OUI* pour activer la surveillance "
        "ou *MODIFIER* pour changer.",
    ])
    return "\n".join(lines)


def render_status(
    criteria: Optional[Criteria], state: ConversationState, currency: str
) -> str:
    if criteria is None:
        return "Vous n'avez pas encore configuré de critères. Tapez *MODIFIER* pour commencer."

    lines = ["📋 *Vos critères actuels :*", ""]
    lines.extend(_criteria_lines(criteria, currency))
    lines.extend(["", f"📊 Statut : {STATE_LABELS.get(state, '🔴 Inactif')}"])
    return "\n".join(lines)
