from enum import Enum


class InfoTopic(Enum):
    DURATION = "durata_intervento"
    WHAT_TO_PREPARE = "cosa_portare"
    COSTS = "costi"
    SAFETY = "sicurezza"
    AFTERWARDS = "dopo_intervento"
    CONTACTS = "contatti"


INFO_ANSWERS: dict[InfoTopic, str] = {
    InfoTopic.DURATION: (
        "L'intervento di sostituzione contatore richiede normalmente 20-25 minuti "
        "con una breve interruzione del servizio di circa 15-20 minuti."
    ),
    InfoTopic.WHAT_TO_PREPARE: (
        "È necessario che lei sia presente durante l'intervento solo per contatori non "
        "accessibili e che l'area del contatore sia facilmente accessibile. I tecnici "
        "potrebbero richiederle un documento d'identità."
    ),
    InfoTopic.COSTS: (
        "L'intervento di sostituzione programmato è completamente gratuito e obbligatorio "
        "secondo normativa."
    ),
    InfoTopic.SAFETY: (
        "I nostri tecnici seguono tutti i protocolli di sicurezza e sono dotati di "
        "dispositivi di protezione. L'intervento è completamente sicuro."
    ),
    InfoTopic.AFTERWARDS: "Dopo la sostituzione il servizio sarà immediatamente ripristinato.",
    InfoTopic.CONTACTS: "Per emergenze può contattare il nostro numero verde 353-3331878.",
}

UNKNOWN_TOPIC_ANSWER = (
    "Per questa informazione specifica la invito a contattare direttamente il nostro "
    "ufficio tecnico."
)


def lookup_info(topic: str | None) -> str | None:
    """Return the canned answer for ``topic``, or None for unknown topics."""
    try:
        return INFO_ANSWERS[InfoTopic((topic or "").strip())]
    except ValueError:
        return None
