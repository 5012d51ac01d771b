"""
AI Treasury Advisor

DESIGN DECISION: The advisor is a FORMATTER, not an ORACLE.
Every figure it may quote is computed beforehand by
``treasury.queries.analytics.build_advisor_snapshot`` and sent with the
question. The model only reads that snapshot and answers in French.

CRITICAL BOUNDARIES:
- CAN: explain balances, list registration debts, summarise activities
- CANNOT: change the ledger (it never receives the state, only a snapshot)
- NEVER raises: any failure becomes a fixed fallback text

Transient service errors (unavailable, rate limited, timeout) are retried
with tenacity before falling back.
"""

import json
from typing import Any, Optional

import google.generativeai as genai
import structlog
from google.api_core import exceptions as google_exceptions
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from treasury.config import GeminiSettings


logger = structlog.get_logger()


NO_ANSWER_TEXT = "Je n'ai pas pu générer de réponse pour le moment."
ERROR_TEXT = (
    "Désolé, une erreur est survenue lors de l'analyse des données. "
    "Vérifiez votre connexion."
)

TRANSIENT_ERRORS = (
    google_exceptions.ServiceUnavailable,
    google_exceptions.ResourceExhausted,
    google_exceptions.DeadlineExceeded,
    google_exceptions.InternalServerError,
    ConnectionError,
    TimeoutError,
)


def build_system_instruction(association_name: str, currency: str = "FCFA") -> str:
    """Business rules and tone given to the model with every question."""
    return f"""Tu es l'Assistant Trésorier IA expert pour l'association "{association_name}".
Tu as accès à TOUTES les données financières et administratives en temps réel via le contexte JSON fourni.

RÈGLES MÉTIER STRICTES (A SAVOIR PAR CŒUR) :
1. Inscription "Nouveau Membre" = 5000 {currency}.
2. Inscription "Ancien Membre" = 2500 {currency}.
3. Les Responsables (Premier, Trésorier, Secrétaire, etc.) ne paient PAS de frais d'inscription (0 {currency}).
4. Chaque activité a un coût spécifique défini (cost_child pour les enfants, cost_responsable pour les responsables).
5. Une dette d'inscription est calculée : (Montant Attendu - Montant Payé).

TON RÔLE :
- Analyser les finances : Si le solde est négatif, alerte gentiment.
- Suivre les dettes : Si on te demande "Qui n'a pas payé ?", liste les noms présents dans 'registration_debts_list'.
- Bilan d'activité : Si on te demande un bilan sur une sortie, utilise les données 'activities_summary' (Recettes vs Dépenses).
- Être proactif : Suggère des améliorations si tu vois beaucoup de dépenses dans une catégorie.

TON ETAT D'ESPRIT :
- Professionnel, Précis, mais Bienveillant (contexte religieux/associatif).
- Réponds toujours en Français.
- Utilise le {currency} comme devise.
- Sois concis sauf si on te demande un rapport détaillé.

Si la réponse nécessite un calcul, fais-le explicitement."""


def build_prompt(question: str, snapshot: dict[str, Any]) -> str:
    context = json.dumps(snapshot, ensure_ascii=False)
    return f"""CONTEXTE DES DONNÉES (JSON) :
{context}

QUESTION DE L'UTILISATEUR :
{question}"""


class TreasuryAdvisor:
    """
    Answers free-text questions about the ledger.

    ``model`` may be injected (tests use a fake exposing
    ``generate_content_async``); otherwise a Gemini model is configured
    from ``settings``.
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        association_name: str = "Enfants de Chœur de la Chapelle Sainte Famille",
        currency: str = "FCFA",
        model: Any = None,
        max_attempts: Optional[int] = None,
        retry_wait_seconds: float = 1.0,
    ):
        self._settings = settings
        self._system_instruction = build_system_instruction(association_name, currency)
        self._max_attempts = max_attempts or (settings.max_attempts if settings else 2)
        self._retry_wait_seconds = retry_wait_seconds
        self._model = model if model is not None else self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        if self._settings is None:
            raise ValueError("Gemini settings are required when no model is injected")
        genai.configure(api_key=self._settings.api_key)
        return genai.GenerativeModel(
            model_name=self._settings.model_name,
            system_instruction=self._system_instruction,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
            },
        )

    async def _generate(self, prompt: str) -> str:
        response = await self._model.generate_content_async(prompt)
        try:
            return (response.text or "").strip()
        except ValueError:
            # Blocked or empty candidates: the SDK refuses to build .text
            return ""

    async def ask(self, question: str, snapshot: dict[str, Any]) -> str:
        """
        Ask a question about the snapshot.

        Returns the model's answer, ``NO_ANSWER_TEXT`` when it produced
        nothing, or ``ERROR_TEXT`` when the call failed.
        """
        prompt = build_prompt(question, snapshot)
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(TRANSIENT_ERRORS),
                stop=stop_after_attempt(self._max_attempts),
                wait=wait_exponential(multiplier=self._retry_wait_seconds, max=8),
                reraise=True,
            ):
                with attempt:
                    answer = await self._generate(prompt)
        except Exception as e:
            logger.error("advisor_failed", error=str(e), error_type=type(e).__name__)
            return ERROR_TEXT

        if not answer:
            logger.warning("advisor_empty_answer")
            return NO_ANSWER_TEXT
        return answer
