"""
Static catalog of billable services a ticket can be opened for.

A ticket's category tag is the service id, optionally followed by the
``+upgrade`` suffix (only for the Técnico group). Every rule that compares
categories compares the base id, never the raw tag.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

UPGRADE_SUFFIX = "+upgrade"
UPGRADE_SERVICE_ID = "inclui-socio"
UPGRADEABLE_GROUP = "Técnico"

ADMINISTRATIVE_APPEAL = "recurso-administrativo"
IMPUGNATION = "impugnacao-edital"

# Categories auto-resolved when a petition lands on the linked opportunity
PETITION_RESOLVED_CATEGORIES = frozenset({ADMINISTRATIVE_APPEAL, IMPUGNATION})


@dataclass(frozen=True)
class ServiceCategory:
    id: str
    group: str
    service: str
    description: str
    price_regular: str
    price_subscriber: str
    success_fee: str

    @property
    def upgradeable(self) -> bool:
        return self.group == UPGRADEABLE_GROUP


SERVICE_CATEGORIES: Tuple[ServiceCategory, ...] = (
    ServiceCategory("consulta", "Inteligência", "Consulta",
                    "Solução de dúvidas e perguntas.",
                    "R$ 516,47", "Incluso (até 4/mês)", "N/A"),
    ServiceCategory("parecer-go-no-go", "Inteligência", "Parecer \"Go/No Go\"",
                    "Auditoria rápida para decidir se disputa ou não (Evita multa).",
                    "R$ 516,47", "Incluso (até 2/mês)", "N/A"),
    ServiceCategory("onboarding-cadastramento", "Administrativo", "Onboarding / Cadastramento no portal",
                    "Cadastro da empresa no portal de compras onde ocorrerá o certame.",
                    "R$ 997,00", "Incluso até 4/mês", "N/A"),
    ServiceCategory("pedido-esclarecimento", "Administrativo", "Pedido de Esclarecimento",
                    "Tirar dúvidas formais ou forçar interpretação favorável.",
                    "R$ 997,00", "Incluso até 2/mês", "N/A"),
    ServiceCategory("sessao-lances", "Administrativo", "Sessão de Lances",
                    "Acompanhamento da fase de lances e interações com o pregoeiro.",
                    "R$ 997,00", "R$ 498,00", "N/A"),
    ServiceCategory("gestao-documentos", "Administrativo", "Gestão de Documentos",
                    "Garantir que o envelope de proposta está formalmente correto.",
                    "R$ 997,00", "R$ 498,00", "N/A"),
    ServiceCategory("atestado-capacidade", "Administrativo", "Atestado de Capacidade Técnica",
                    "Auxílio da obtenção ou formalização de atestado.",
                    "R$ 2.000,00", "R$ 997,00", "N/A"),
    ServiceCategory("elaboracao-proposta", "Administrativo", "Elaboração de Proposta",
                    "Conformar a tabela de custos às formalidades técnicas do edital.",
                    "de R$ 2.000,00 a R$ 8.000,00", "de R$ 997,00 a R$ 5.000,00", "N/A"),
    ServiceCategory("acompanhamento-execucao", "Execução", "Acompanhamento de Execução Contratual",
                    "Entregar documentos exigidos ou interagir com o fiscal do contrato (por intervenção).",
                    "R$ 1.500,00", "R$ 498,00", "N/A"),
    ServiceCategory("termo-aditivo", "Execução", "Termo Aditivo",
                    "Renegociar condições ou prazos.",
                    "R$ 2.500,00", "R$ 1.000,00", "N/A"),
    ServiceCategory(IMPUGNATION, "Técnico", "Impugnação ao Edital",
                    "Ataque Preventivo. Derrubar barreiras ilegais no edital.",
                    "R$ 1.500,00", "R$ 1.200,00", "Taxa Base"),
    ServiceCategory(ADMINISTRATIVE_APPEAL, "Técnico", "Recurso Administrativo",
                    "A Briga. Reverter inabilitação ou derrubar concorrente.",
                    "R$ 2.500,00", "R$ 1.800,00", "TB + incremento de 0,5%"),
    ServiceCategory("contrarrazoes", "Técnico", "Contrarrazões",
                    "Defesa. Garantir a vitória contra recursos de terceiros.",
                    "R$ 2.000,00", "R$ 1.500,00", "Taxa Base"),
    ServiceCategory(UPGRADE_SERVICE_ID, "Upgrade", "Inclui o sócio no fluxo do pipeline",
                    "Upgrade de peça técnica para o nível estratégico da empresa.",
                    "R$ 2.500,00", "R$ 1.000,00", "N/A"),
    ServiceCategory("defesa-penalidade", "Estratégico", "Defesa contra aplicação de penalidade",
                    "Fundamentos para se proteger de multas e sanções.",
                    "R$ 9.987,04", "R$ 5.000,00", "10% a 20% sobre a penalidade"),
    ServiceCategory("representacao", "Estratégico", "Representação (Controle Interno/Ouvidoria)",
                    "Aciona os donos da caneta para mudar uma decisão.",
                    "R$ 4.000,00", "R$ 3.000,00", "TB + incremento de 1%"),
    ServiceCategory("reequilibrio", "Estratégico", "Pedido de Reequilíbrio Econômico-Financeiro",
                    "Recuperação de margem de lucro.",
                    "R$ 5.000,00", "R$ 3.500,00", "10% a 20% sobre o retroativo"),
    ServiceCategory("plano-integridade", "Estratégico", "Plano de Integridade",
                    "Documentos que são diferencial para sua empresa.",
                    "A combinar", "A combinar", "N/A"),
    ServiceCategory("formacao-consorcios", "Estratégico", "Formação de Consórcios",
                    "União de empresas parceiras para vencer um objeto complexo.",
                    "A combinar", "A combinar", "TB + incremento de 1%"),
    ServiceCategory("tc-denuncia-defesa", "Controle / Judicial",
                    "Atuação em Matéria de Tribunal de Contas (Denúncia/Defesa)",
                    "Nuclear. Denúncia/Defesa externa.",
                    "R$ 15.812,79", "R$ 11.000,00", "TB + incremento de 1,5%"),
    ServiceCategory("tc-reequilibrio", "Controle / Judicial",
                    "Atuação em Matéria de Tribunal de Contas (Reequilíbrio)",
                    "Nuclear. Reequilíbrio Econômico.",
                    "R$ 15.812,79", "R$ 11.000,00", "12,5% a 25% sobre o retroativo"),
    ServiceCategory("reequilibrio-rito-comum", "Controle / Judicial", "Reequilíbrio Econômico Pelo Rito Comum",
                    "Ação judicial para recuperar margem de lucro.",
                    "R$ 16.645,05", "R$ 12.000,00", "15 a 30% sobre o retroativo"),
    ServiceCategory("mandado-seguranca", "Controle / Judicial", "Mandado de Segurança",
                    "Ação judicial para garantir direito líquido e certo.",
                    "R$ 6.658,02", "R$ 5.000,00", "3% a 5% do valor da causa"),
)

_BY_ID: Dict[str, ServiceCategory] = {category.id: category for category in SERVICE_CATEGORIES}


def get_category(category_id: str) -> Optional[ServiceCategory]:
    return _BY_ID.get(category_id)


def base_category(tag: Optional[str]) -> Optional[str]:
    """Strip the upgrade suffix from a compound category tag."""
    if tag is None:
        return None
    if tag.endswith(UPGRADE_SUFFIX):
        return tag[: -len(UPGRADE_SUFFIX)]
    return tag


def has_upgrade(tag: Optional[str]) -> bool:
    return bool(tag) and tag.endswith(UPGRADE_SUFFIX)


def category_matches(tag: Optional[str], category_id: str) -> bool:
    return base_category(tag) == category_id


def grouped_categories() -> Dict[str, List[ServiceCategory]]:
    groups: Dict[str, List[ServiceCategory]] = {}
    for category in SERVICE_CATEGORIES:
        groups.setdefault(category.group, []).append(category)
    return groups


def quote_price(tag: str, *, paid_subscriber: bool) -> str:
    """
    Price string stored on the ticket.

    Raises:
        ValueError: unknown category, or an upgrade on a non-Técnico service
    """
    category = get_category(base_category(tag))
    if category is None:
        raise ValueError(f"Unknown service category: {tag}")

    price = category.price_subscriber if paid_subscriber else category.price_regular
    if not has_upgrade(tag):
        return price

    if not category.upgradeable:
        raise ValueError(f"Service {category.id} does not accept the upgrade option")
    upgrade = _BY_ID[UPGRADE_SERVICE_ID]
    upgrade_price = upgrade.price_subscriber if paid_subscriber else upgrade.price_regular
    return f"{price} + {upgrade_price} (Upgrade)"
