from app.core.config import settings

PERMISSIONS_CATALOG = [
    ("requests.create", "Criar requisicao", "Permite criar requisicoes internas."),
    ("requests.view", "Consultar requisicoes", "Permite consultar requisicoes e respetivo estado."),
    ("requests.change_status", "Alterar estado da requisicao", "Permite alterar estado manualmente."),
    ("requests.approve", "Aprovar requisicao", "Permite aprovar requisicoes."),
    ("requests.final_approve", "Aprovacao final (admin)", "Permite decisao final apos aprovacao de chefia."),
    ("requests.final_reject", "Rejeicao final (admin)", "Permite rejeicao final apos aprovacao de chefia."),
    ("requests.reject", "Rejeitar requisicao", "Permite rejeitar requisicoes."),
    ("requests.sign_approval", "Assinar aprovacao", "Permite assinar aprovacao da requisicao."),
    ("requests.void_sign", "Anular assinatura", "Permite anular assinatura de aprovacao."),
    ("requests.pickup_sign", "Assinar levantamento", "Permite registar assinatura de levantamento."),
    ("requests.void_pickup_sign", "Anular assinatura de levantamento", "Permite anular assinatura de levantamento."),
    ("requests.dispatch_presidency", "Despachar para presidencia", "Permite enviar processo para despacho presidencial."),
    ("assets.manage", "Gerir patrimonio", "Permite gerir ativos e patrimonio."),
    ("assets.view", "Consultar patrimonio", "Permite consultar ativos e historico patrimonial."),
    ("assets.create", "Criar ativos patrimoniais", "Permite registar novos ativos patrimoniais."),
    ("assets.move", "Movimentar ativos", "Permite transferencias, afetacoes e movimentos patrimoniais."),
    ("assets.dispose", "Abater ativos", "Permite abrir e decidir processos de abate patrimonial."),
    ("assets.audit_view", "Consultar auditoria patrimonial", "Permite consultar trilho de movimentos e auditoria patrimonial."),
    ("finance.manage", "Gerir financiamento", "Permite gerir financiamento e compromissos."),
    ("finance.view", "Consultar financiamento", "Permite consultar processos financeiros."),
    ("presidency.approve", "Aprovacao da presidencia", "Permite aprovacoes de nivel presidencia."),
    ("public_requests.view", "Consultar requerimentos externos", "Permite visualizar requerimentos externos."),
    ("public_requests.handle", "Tratar requerimentos externos", "Permite aceitar/rejeitar requerimentos externos."),
    ("tickets.manage", "Gerir tickets", "Permite gerir tickets e operacoes de suporte."),
    ("users.manage", "Gerir utilizadores", "Permite gerir utilizadores e respetivos acessos."),
    ("reports.view", "Consultar relatorios", "Permite aceder a relatorios operacionais e executivos."),
]

ALL_PERMISSION_KEYS = [key for key, _, _ in PERMISSIONS_CATALOG]

_PRESIDENCY_BUNDLE = [
    "requests.view",
    "requests.approve",
    "requests.reject",
    "requests.final_approve",
    "requests.final_reject",
    "requests.sign_approval",
    "requests.dispatch_presidency",
    "presidency.approve",
    "finance.view",
    "assets.view",
    "assets.audit_view",
    "reports.view",
    "public_requests.view",
]

ROLE_TEMPLATES = [
    ("PRESIDENT", "Presidencia", "Perfil com poderes de aprovacao de presidencia."),
    ("VICE_PRESIDENT", "Vice-Presidencia", "Perfil de substituicao formal da presidencia."),
    ("COUNCILOR", "Vereador", "Perfil de decisao por pelouro/unidade organica."),
    ("DIVISION_HEAD", "Chefe de Divisao", "Perfil de validacao e aprovacao intermedia da divisao."),
    ("FINANCE_MANAGER", "Gestor Financeiro", "Perfil de gestao financeira municipal."),
    ("FINANCE_OFFICER", "Tecnico Financeiro", "Perfil operacional financeiro sem decisao estrategica global."),
    ("ASSET_MANAGER", "Gestor de Patrimonio", "Perfil de gestao de ativos e inventario."),
    ("PROCUREMENT_OFFICER", "Tecnico de Aprovisionamento", "Perfil para operacoes de compra, fornecedores e apoio a requisicoes."),
    ("SERVICE_MANAGER", "Gestor de Servico", "Perfil de coordenacao por servico requisitante."),
    ("EXTERNAL_REQUEST_VIEWER", "Leitor de Requerimentos Externos", "Perfil de consulta de requerimentos externos sem capacidade de decisao."),
    ("EXTERNAL_REQUEST_REVIEWER", "Gestor de Requerimentos Externos", "Perfil para tratar requerimentos externos."),
    ("SUPERVISOR_UO", "Supervisor de Unidade Organica", "Perfil de supervisao local por unidade organica."),
    ("OPERATOR_UO", "Operador de Unidade Organica", "Perfil operacional local com acesso limitado."),
    ("AUDITOR", "Auditor", "Perfil de consulta e verificacao sem permissoes de alteracao."),
    ("SUPPORT_ADMIN", "Administrador de Plataforma", "Perfil tecnico de gestao operacional da aplicacao."),
]


def role_permissions_map() -> dict[str, list[str]]:
    if settings.RBAC_PLATFORM_ADMIN_ALL_ACCESS:
        support_admin = list(ALL_PERMISSION_KEYS)
    else:
        support_admin = ["tickets.manage", "users.manage", "reports.view"]
    return {
        "PRESIDENT": list(_PRESIDENCY_BUNDLE),
        "VICE_PRESIDENT": list(_PRESIDENCY_BUNDLE),
        "COUNCILOR": [key for key in _PRESIDENCY_BUNDLE if key != "presidency.approve"],
        "DIVISION_HEAD": [
            "requests.create",
            "requests.view",
            "requests.approve",
            "requests.reject",
            "requests.sign_approval",
            "requests.pickup_sign",
            "finance.view",
            "assets.view",
            "assets.audit_view",
            "public_requests.view",
        ],
        "FINANCE_MANAGER": [
            "requests.view",
            "requests.approve",
            "requests.reject",
            "requests.final_approve",
            "requests.final_reject",
            "finance.view",
            "finance.manage",
            "reports.view",
        ],
        "FINANCE_OFFICER": ["requests.view", "finance.view", "finance.manage"],
        "ASSET_MANAGER": [
            "requests.view",
            "requests.change_status",
            "requests.pickup_sign",
            "requests.void_pickup_sign",
            "assets.view",
            "assets.audit_view",
            "assets.manage",
            "assets.create",
            "assets.move",
            "assets.dispose",
            "reports.view",
        ],
        "PROCUREMENT_OFFICER": [
            "requests.create",
            "requests.view",
            "assets.view",
            "assets.audit_view",
            "finance.view",
        ],
        "SERVICE_MANAGER": [
            "requests.create",
            "requests.view",
            "requests.approve",
            "requests.reject",
            "requests.sign_approval",
            "requests.pickup_sign",
            "requests.dispatch_presidency",
            "public_requests.view",
        ],
        "EXTERNAL_REQUEST_VIEWER": ["public_requests.view"],
        "EXTERNAL_REQUEST_REVIEWER": ["public_requests.view", "public_requests.handle"],
        "SUPERVISOR_UO": ["requests.create", "requests.view", "public_requests.view", "reports.view"],
        "OPERATOR_UO": ["requests.create", "requests.view"],
        "AUDITOR": ["requests.view", "assets.view", "finance.view", "public_requests.view", "reports.view"],
        "SUPPORT_ADMIN": support_admin,
    }


def permission_group(key: str) -> str:
    return key.split(".", 1)[0]


def is_final_decision(key: str) -> bool:
    """Final decisions (``requests.final_approve``...) are only honoured unscoped."""
    return key.rsplit(".", 1)[-1].startswith("final_")
