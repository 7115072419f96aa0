"""Daily checklist generation.

The snapshot and the client's display name are interpolated into a fixed
instruction template and sent to Gemini. The template is in Portuguese because
the checklist is posted to Portuguese-speaking operations channels.
"""

import json
import logging

from google import genai

from analyzer import condense_snapshot
from config import DEFAULT_GEMINI_MODEL as DEFAULT_MODEL
from errors import ConfigurationError, ReportGenerationError

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = """\
Aqui estão os dados brutos do AppDynamics do cliente "{client_name}":
{data}

Por favor, gere o checklist diário seguindo rigorosamente as instruções do prompt abaixo:

--- INSTRUÇÕES DO PROMPT ---
Você é um especialista em Observabilidade/SRE, com foco em AppDynamics.
Preciso que você gere diariamente um checklist/resumo para envio via chat (Teams) sobre a saúde do ambiente do cliente, usando sempre a janela das últimas 24 horas do AppDynamics.

Contexto do cliente:
Nome: {client_name}
Área: [cliente financeiro, possui aplicações bancarias, consórcio e seguradora].
Ferramenta principal de observabilidade: AppDynamics (APM, Servers, Databases).
Objetivo: comunicação rápida, clara e objetiva.

Regras para a saída:
- Formato de mensagem para Teams, texto plano, em blocos curtos e scanáveis.
- Sempre em português.
- Só mencionar o que estiver em WARNING ou CRITICAL.
- REGRA DE OURO: Analise o campo 'healthViolations' com atenção total. Se houver qualquer alerta com status 'OPEN', 'CONTINUE' ou que tenha ocorrido nas últimas 24h, ele DEVE ser reportado.
- Se o alerta for de 'Memory Usage', 'CPU Usage' ou 'Disk Usage' e afetar um servidor (como 'docker-gcp'), coloque-o obrigatoriamente no Bloco 3 (Infraestrutura).
- Use os detalhes da violação (como 'description' ou 'name') para descrever o problema.
- Se houver alertas críticos abertos, o 'Status Geral' deve refletir isso (ex: "Ambiente com alertas críticos de infraestrutura pendentes").
- Não listar aplicações/servidores/DB em OK.
- DESCONSIDERAR APLICAÇÃO OU SERVIDOR QUE CONTENHA HML.

Estrutura fixa da mensagem:
Linha 1 – Título: "[{client_name}] – Checklist Diário AppDynamics – DD/MM/AAAA (últimas 24h)"
Bloco 1 – Status Geral: 2 a 3 linhas sobre riscos principais.
Bloco 2 – Aplicações (somente Warning/Crítico): 🟠 para Warning, 🔴 para Crítico. Nome, Volume, RT, Erro%, e comentário de negócio.
Bloco 3 – Infraestrutura (somente servidores em Crítico): Nome, %disco, %CPU, %memória, comentário. Se não tiver as porcentagens exatas, descreva o alerta (ex: "🔴 docker-gcp: Uso de memória muito alto").
Bloco 4 – Banco de Dados (somente DB em Crítico): Nome, CPU, memória, waits, comentário.
Bloco 5 – Ações Recomendadas (curto prazo): 3 a 5 bullets objetivos baseados nos problemas reais.
--- FIM DAS INSTRUÇÕES ---
"""


def build_prompt(snapshot, client_name):
    data = json.dumps(condense_snapshot(snapshot), indent=2, ensure_ascii=False)
    return PROMPT_TEMPLATE.format(client_name=client_name, data=data)


def generate_report(snapshot, client_name, api_key=None, model=DEFAULT_MODEL, client=None):
    """Return the checklist text produced by the model.

    ``client`` may be any object exposing ``models.generate_content``; a
    :class:`google.genai.Client` is built from ``api_key`` when it is omitted.
    """
    if client is None:
        if not api_key:
            raise ConfigurationError("GEMINI_API_KEY not found.")
        client = genai.Client(api_key=api_key)

    prompt = build_prompt(snapshot, client_name)
    try:
        response = client.models.generate_content(model=model, contents=prompt)
    except Exception as exc:
        logger.exception("Gemini call failed for %s", client_name)
        raise ReportGenerationError(f"Language model call failed: {exc}") from exc

    text = (getattr(response, "text", None) or "").strip()
    if not text:
        raise ReportGenerationError("Language model returned no text.")

    logger.info("Report generated for %s with %s (%d chars)", client_name, model, len(text))
    return text
