from typing import List

from .schemas import LinkedApp

LINKED_APPS: List[LinkedApp] = [
    LinkedApp(
        name="Sofia Bot",
        description="Dashboard del chatbot WhatsApp",
        url="https://sofia-bot-dashboard.vercel.app",
        icon="🤖",
    ),
    LinkedApp(
        name="VAPI Campaigns",
        description="Campañas de llamadas automáticas",
        url="https://vapi-campaign-dashboard.vercel.app",
        icon="📞",
    ),
    LinkedApp(
        name="Chatwoot",
        description="Plataforma de soporte y mensajería (Hetzner)",
        url="https://178.156.255.182.sslip.io",
        icon="💬",
    ),
]
