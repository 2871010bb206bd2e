"""
app.py
EasyASO - occupational health (ASO) records dashboard.
Run: streamlit run app.py
"""

from __future__ import annotations

import logging
import smtplib
import sqlite3
from datetime import date

import pandas as pd
import streamlit as st

import audit
import auth
import config
import db
import importer
import mailer
import records
import utils
from models import (
    ASO_TYPES,
    CONVOCATION_STATUS_LABELS,
    MEMBER_STATUS_LABELS,
    ROLE_LABELS,
)

st.set_page_config(page_title="EasyASO", layout="wide")

logger = logging.getLogger("easyaso.app")

# Errors raised by the store or the mail server; shown to the user, never retried
REMOTE_ERRORS = (sqlite3.Error, smtplib.SMTPException, OSError)

MONTHS = ["Jan", "Fev", "Mar", "Abr", "Mai", "Jun", "Jul", "Ago", "Set", "Out", "Nov", "Dez"]

PAGES = {
    "Dashboard": "Visão Geral",
    "Integrantes": "Gerenciamento de Integrantes",
    "Convocação": "Convocação",
    "Notificações": "Notificações",
    "Configurações": "Configurações",
}


def init_once():
    # Initialize DB + default admin if needed
    if "db_ready" not in st.session_state:
        db.init_db(auth.hash_password(config.DEFAULT_ADMIN["password"]))
        st.session_state.db_ready = True


def require_login():
    if "user_id" not in st.session_state:
        st.session_state.user_id = None
    if "page" not in st.session_state:
        st.session_state.page = "Dashboard"


def logout():
    logger.info("User %s signed out", st.session_state.user_id)
    st.session_state.user_id = None
    st.session_state.page = "Dashboard"
    st.session_state.feed_limit = config.FEED_PAGE_SIZE


def current_user():
    """Session check on every run: a removed account loses access immediately."""
    if not st.session_state.user_id:
        return None
    user = auth.get_user(st.session_state.user_id)
    if user is None:
        logger.warning("Access denied: user %s not found", st.session_state.user_id)
        logout()
        st.error("Acesso Negado: Seu usuário não possui permissão de acesso ou foi removido.")
    return user


def login_screen():
    st.title("EasyASO")
    st.caption("Gestão de Saúde Ocupacional")

    col1, col2 = st.columns([1, 1])
    with col1:
        email = st.text_input("Email", value=config.DEFAULT_ADMIN["email"], placeholder="seu.nome@empresa.com")
        password = st.text_input("Senha", type="password")
        if st.button("Entrar", type="primary"):
            try:
                user = auth.sign_in(email, password)
            except REMOTE_ERRORS:
                logger.exception("Error signing in")
                st.error("Falha no login.")
                return
            if user:
                st.session_state.user_id = user.id
                st.rerun()
            else:
                st.error("Email ou senha inválidos.")

    with col2:
        st.info(
            "O primeiro acesso cria um administrador padrão:\n\n"
            f"- email: **{config.DEFAULT_ADMIN['email']}**\n\n"
            "Você deverá alterar a senha no primeiro acesso."
        )


def password_form(user, key: str) -> bool:
    new1 = st.text_input("Nova senha", type="password", key=f"{key}_new")
    new2 = st.text_input("Confirmar nova senha", type="password", key=f"{key}_confirm")
    st.caption("A nova senha deve conter no mínimo 8 caracteres, incluindo letras e números.")

    if st.button("Confirmar Alteração", type="primary", key=f"{key}_submit"):
        errors = utils.validate_new_password(new1, new2)
        if errors:
            for e in errors:
                st.error(e)
            return False
        try:
            auth.change_password(user.id, new1)
        except REMOTE_ERRORS:
            logger.exception("Error changing password")
            st.error("Erro ao alterar senha.")
            return False
        audit.log_action(user.id, "password_change", user.nome)
        st.success("Senha alterada com sucesso!")
        return True
    return False


def force_change_password_screen(user):
    st.title("⚠️ Alterar Senha (Obrigatório)")
    st.warning("Você deve alterar a senha temporária antes de usar o sistema.")
    if password_form(user, "forced"):
        st.rerun()


# ---------- Dialogs ----------

@st.dialog("Lançar ASO")
def aso_launch_dialog(user):
    try:
        members = records.fetch_members()
    except REMOTE_ERRORS:
        logger.exception("Error fetching members")
        st.error("Erro ao carregar integrantes.")
        return

    search = st.text_input("Buscar integrante...")
    options = {
        f"{m.nome} - {m.cargo or '-'} ({m.unidade or '-'})": m.id
        for m in records.filter_members(members, search)
    }
    if not options:
        st.caption("Nenhum integrante encontrado.")
        return

    chosen = st.selectbox("Integrante", list(options.keys()))
    c1, c2 = st.columns(2)
    with c1:
        aso_date = st.date_input("Data do ASO", value=date.today(), format="DD/MM/YYYY")
    with c2:
        aso_type = st.selectbox("Tipo", ASO_TYPES, index=ASO_TYPES.index("Periódico"))
    obs = st.text_area("Observações", placeholder="Observações adicionais...")

    if st.button("Lançar ASO", type="primary"):
        try:
            records.launch_aso(user.id, options[chosen], aso_date.isoformat(), aso_type, obs)
        except ValueError as e:
            st.error(str(e))
            return
        except REMOTE_ERRORS:
            logger.exception("Error launching ASO")
            st.error("Erro ao lançar ASO.")
            return
        st.success("ASO lançado com sucesso!")
        st.rerun()


# ---------- Pages ----------

def dashboard_page(user):
    try:
        members = records.fetch_members()
    except REMOTE_ERRORS:
        logger.exception("Error fetching members")
        st.error("Erro ao carregar integrantes.")
        return

    years = utils.available_years(members)
    year = st.selectbox("Ano", years, index=years.index(date.today().year))

    year_data = utils.members_for_year(members, year)
    monthly = utils.monthly_exam_counts(members, year)
    counts = utils.status_counts(members)

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Exames realizados no ano", sum(monthly))
    c2.metric("Vencimentos no ano", utils.expiring_in_year(members, year))
    c3.metric("Convocar / Urgente", counts["Summon"] + counts["Urgent"])
    c4.metric("Vencidos", counts["Expired"])

    st.divider()

    st.subheader(f"Exames realizados por mês ({year})")
    labels = [f"{i:02d} {m}" for i, m in enumerate(MONTHS, start=1)]
    st.bar_chart(pd.DataFrame({"Exames": monthly}, index=pd.Index(labels, name="Mês")))

    st.divider()

    head, action = st.columns([4, 1])
    head.subheader("Integrantes no ano")
    if action.button("Gerenciar Integrantes"):
        st.session_state.page = "Integrantes"
        st.rerun()

    if year_data:
        st.dataframe(utils.members_dataframe(year_data), use_container_width=True, hide_index=True)
    else:
        st.caption(f"Nenhum registro encontrado para o ano de {year}.")


def member_form(user, existing=None):
    if existing:
        st.subheader(f"✏️ Editar Integrante (ID: {existing.id})")
    else:
        st.subheader("➕ Inserir Integrante")

    key = f"edit_{existing.id}" if existing else "new"
    col1, col2, col3 = st.columns(3)
    with col1:
        nome = st.text_input("Nome completo", value=(existing.nome if existing else ""), key=f"{key}_nome")
        email = st.text_input("Email", value=(existing.email or "" if existing else ""), key=f"{key}_email")
    with col2:
        cargo = st.text_input("Cargo", value=(existing.cargo or "" if existing else ""), key=f"{key}_cargo")
        unidade = st.text_input("Unidade", value=(existing.unidade or "" if existing else ""), key=f"{key}_unidade")
    with col3:
        cpf = st.text_input("CPF (opcional)", value=(existing.cpf or "" if existing else ""), key=f"{key}_cpf")
        last_aso = st.text_input(
            "Data do último ASO",
            value=(utils.iso_to_br(existing.last_aso_date) if existing and existing.last_aso_date else ""),
            placeholder="DD/MM/AAAA",
            key=f"{key}_aso",
        )

    if st.button("Salvar", type="primary", key=f"{key}_save"):
        try:
            if existing:
                records.update_member(user.id, existing.id, nome, email, cargo, unidade, cpf, last_aso)
                st.session_state.edit_member_id = None
                st.success("Integrante atualizado com sucesso!")
            else:
                records.create_member(user.id, nome, email, cargo, unidade, cpf, last_aso)
                st.success("Integrante cadastrado com sucesso!")
        except ValueError as e:
            st.error(str(e))
            return
        except REMOTE_ERRORS:
            logger.exception("Error saving member")
            st.error("Erro ao atualizar integrante." if existing else "Erro ao cadastrar integrante.")
            return
        st.rerun()


def member_details(member):
    st.subheader(f"{member.initials} · {member.nome}")
    c1, c2, c3 = st.columns(3)
    c1.write(f"**Cargo:** {member.cargo or '-'}")
    c2.write(f"**Unidade:** {member.unidade or '-'}")
    c3.write(f"**Status:** {member.status_label}")
    st.write(
        f"Último ASO: **{utils.iso_to_br(member.last_aso_date)}** | "
        f"Vencimento: **{utils.iso_to_br(member.expiration_date)}**"
    )

    st.caption("Histórico de ASOs")
    history = records.member_history(member.id)
    if history:
        st.dataframe(
            pd.DataFrame(
                [{"Data": utils.iso_to_br(h.date), "Tipo": h.aso_type, "Observações": h.notes or ""} for h in history]
            ),
            use_container_width=True,
            hide_index=True,
        )
    else:
        st.caption("Nenhum ASO lançado pelo sistema para este integrante.")


def import_section(user):
    st.subheader("Atualizar Ativos (planilha)")
    st.caption("Colunas: " + ", ".join(config.IMPORT_COLUMNS.values()))
    upload = st.file_uploader("Arquivo Excel", type=["xlsx", "xls"], key="import_file")
    if upload is not None and st.button("Importar", type="primary"):
        try:
            count = importer.import_spreadsheet(upload, actor_id=user.id, filename=upload.name)
        except importer.ImportValidationError as e:
            st.error(str(e))
            return
        except (ValueError, *REMOTE_ERRORS) as e:
            logger.exception("Error processing spreadsheet %s", upload.name)
            st.error(f"Erro ao processar o arquivo Excel: {e}")
            return
        st.success(f"Importação concluída com sucesso! ({count} integrantes)")
        st.rerun()


def members_page(user):
    try:
        members = records.fetch_members()
    except REMOTE_ERRORS:
        logger.exception("Error fetching members")
        st.error("Erro ao carregar integrantes.")
        return

    with st.sidebar:
        st.subheader("Busca & Filtros")
        search = st.text_input("Buscar por nome ou email")
        status_filter = st.selectbox(
            "Status",
            ["All"] + list(MEMBER_STATUS_LABELS),
            format_func=lambda s: "Todos" if s == "All" else MEMBER_STATUS_LABELS[s],
        )

    filtered = records.filter_members(members, search, status_filter)
    st.dataframe(utils.members_dataframe(filtered), use_container_width=True, hide_index=True)
    st.download_button(
        "Exportar CSV",
        data=utils.members_to_csv_bytes(filtered),
        file_name="integrantes.csv",
        mime="text/csv",
        disabled=not filtered,
    )

    st.divider()

    by_id = {m.id: m for m in filtered}
    colA, colB = st.columns([1, 2])
    with colA:
        st.subheader("Selecionar integrante")
        selected_id = st.selectbox(
            "Integrante",
            options=[None] + list(by_id),
            format_func=lambda i: "(nenhum)" if i is None else f"{by_id[i].nome} (ID {i})",
        )

    with colB:
        if selected_id is not None:
            st.subheader("Ações")
            c1, c2 = st.columns(2)
            with c1:
                if st.button("Editar Dados"):
                    st.session_state.edit_member_id = selected_id
                    st.rerun()
            with c2:
                delete_confirm = st.checkbox("Confirmar exclusão", value=False, key="del_confirm")
                if st.button("Excluir Integrante", type="secondary", disabled=not delete_confirm):
                    try:
                        records.delete_member(user.id, selected_id)
                    except REMOTE_ERRORS:
                        logger.exception("Error deleting member %s", selected_id)
                        st.error("Erro ao excluir integrante.")
                    else:
                        st.success("Integrante excluído.")
                        st.rerun()

    if selected_id is not None:
        member_details(by_id[selected_id])

    st.divider()

    edit_id = st.session_state.get("edit_member_id")
    existing = records.get_member(edit_id) if edit_id else None
    if existing:
        member_form(user, existing=existing)
        if st.button("Cancelar edição"):
            st.session_state.edit_member_id = None
            st.rerun()
    else:
        member_form(user)

    st.divider()
    import_section(user)


def convocation_form(user):
    st.subheader("Criar Convocação")
    try:
        members = records.fetch_members()
    except REMOTE_ERRORS:
        logger.exception("Error fetching members")
        st.error("Erro ao carregar integrantes.")
        return

    is_new = st.checkbox("Novo integrante", value=False)
    member_id = None
    new_name = ""
    default_email = ""
    if is_new:
        new_name = st.text_input("Nome", placeholder="Nome completo do novo integrante")
    else:
        by_id = {m.id: m for m in members}
        member_id = st.selectbox(
            "Integrante",
            options=[None] + list(by_id),
            format_func=lambda i: "Selecione..." if i is None else by_id[i].nome,
        )
        if member_id is not None:
            default_email = by_id[member_id].email or ""

    send_email = st.checkbox("Enviar convocação por email", value=True)
    email = ""
    if send_email:
        email = st.text_input(
            "Email", value=default_email, placeholder="exemplo@empresa.com", key=f"conv_email_{member_id}"
        )
    aso_type = st.radio("Tipo de ASO", ASO_TYPES, index=ASO_TYPES.index("Periódico"), horizontal=True)
    conv_date = st.date_input("Data", value=date.today(), format="DD/MM/YYYY")

    c1, c2 = st.columns(2)
    if c1.button("Criar Convocação", type="primary"):
        if not is_new and member_id is None:
            st.error("Selecione um integrante.")
            return
        try:
            records.create_convocation(
                user.id,
                aso_type,
                member_id=member_id,
                new_member_name=new_name,
                email=email,
                conv_date_iso=conv_date.isoformat(),
                send_email=send_email,
            )
        except ValueError as e:
            st.error(str(e))
            return
        except REMOTE_ERRORS:
            logger.exception("Error creating convocation")
            st.error("Erro ao criar convocação.")
            return
        st.session_state.open_convocation = False
        st.success("Convocação criada com sucesso!")
        st.rerun()
    if c2.button("Cancelar"):
        st.session_state.open_convocation = False
        st.rerun()


def convocation_page(user):
    search = st.text_input("Buscar por nome ou tipo de ASO")

    if st.session_state.get("open_convocation"):
        convocation_form(user)
        st.divider()
    elif st.button("Criar Convocação", type="primary"):
        st.session_state.open_convocation = True
        st.rerun()

    try:
        items = records.fetch_convocations(search)
    except REMOTE_ERRORS:
        logger.exception("Error fetching convocations")
        st.error("Erro ao carregar convocações.")
        return

    if items:
        df = pd.DataFrame(
            [
                {
                    "Integrante": c.member_name,
                    "Tipo de ASO": c.aso_type,
                    "Data": utils.iso_to_br(c.date),
                    "Status": CONVOCATION_STATUS_LABELS.get(c.status, c.status),
                }
                for c in items
            ]
        )
        st.dataframe(df, use_container_width=True, hide_index=True)
    else:
        st.caption("Nenhuma convocação encontrada.")


def notifications_page(user):
    st.caption("Histórico de atividades e alertas do sistema")
    limit = st.session_state.setdefault("feed_limit", config.FEED_PAGE_SIZE)
    try:
        entries = audit.fetch_feed(limit)
        total = audit.count_entries()
    except REMOTE_ERRORS:
        logger.exception("Error fetching logs")
        st.error("Erro ao carregar notificações.")
        return

    icons = {"create": "🟢", "edit": "🔵", "delete": "🔴", "system": "🟠"}
    if not entries:
        st.caption("Nenhuma atividade registrada.")
    for e in entries:
        with st.container(border=True):
            st.markdown(f"{icons[audit.entry_kind(e.action)]} **{audit.describe(e)}**")
            if e.details:
                st.caption(e.details)
            st.caption(audit.relative_time(e.timestamp))

    if total > len(entries) and st.button("Carregar atividades anteriores"):
        st.session_state.feed_limit = limit + config.FEED_PAGE_SIZE
        st.rerun()


def access_management(user):
    st.subheader("Gestão de Acessos")
    c1, c2 = st.columns(2)
    invite_email = c1.text_input("Email", placeholder="colaborador@empresa.com")
    invite_name = c2.text_input("Nome", placeholder="Nome do Colaborador")
    if st.button("Enviar Convite", type="primary"):
        try:
            temp_password = auth.invite_user(invite_email, invite_name, actor_id=user.id)
        except ValueError as e:
            st.error(str(e))
        except REMOTE_ERRORS as e:
            logger.exception("Error inviting %s", invite_email)
            st.error(f"Erro ao enviar convite: {e}")
        else:
            st.success("Convite enviado com sucesso!")
            if not mailer.is_enabled():
                st.info(f"Email desativado. Senha temporária: `{temp_password}`")

    st.divider()
    try:
        users = auth.list_users()
    except REMOTE_ERRORS:
        logger.exception("Error fetching users")
        st.error("Erro ao carregar usuários.")
        return
    if users:
        st.dataframe(
            pd.DataFrame(
                [{"Nome": u.nome, "Email": u.email, "Perfil": ROLE_LABELS.get(u.role, u.role)} for u in users]
            ),
            use_container_width=True,
            hide_index=True,
        )
    else:
        st.caption("Nenhum usuário encontrado.")


def settings_page(user):
    st.caption("Gerencie as preferências e configurações do sistema")

    tabs = ["Perfil do Usuário", "Alterar Senha"]
    if user.is_admin:
        tabs.append("Gestão de Acessos")
    panels = st.tabs(tabs)

    with panels[0]:
        st.text_input("Nome", value=user.nome, disabled=True)
        st.text_input("Email", value=user.email, disabled=True)
        st.text_input("Perfil", value=ROLE_LABELS.get(user.role, user.role), disabled=True)

    with panels[1]:
        password_form(user, "settings")

    if user.is_admin:
        with panels[2]:
            access_management(user)


def main_app(user):
    st.sidebar.title("🩺 EasyASO")
    st.sidebar.caption(f"Conectado como: {user.nome}")

    pages = list(PAGES)
    st.session_state.page = st.sidebar.radio("Navegação", pages, index=pages.index(st.session_state.page))

    if st.sidebar.button("Nova Convocação"):
        st.session_state.page = "Convocação"
        st.session_state.open_convocation = True
        st.rerun()
    if st.sidebar.button("Lançar ASO"):
        aso_launch_dialog(user)

    if st.sidebar.button("Sair"):
        logout()
        st.rerun()

    st.header(PAGES[st.session_state.page])

    if st.session_state.page == "Dashboard":
        dashboard_page(user)
    elif st.session_state.page == "Integrantes":
        members_page(user)
    elif st.session_state.page == "Convocação":
        convocation_page(user)
    elif st.session_state.page == "Notificações":
        notifications_page(user)
    elif st.session_state.page == "Configurações":
        settings_page(user)


# --------- App entry ---------

def run():
    logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT)
    init_once()
    require_login()

    user = current_user()
    if user is None:
        login_screen()
        return

    # Temporary password (default admin, invited users) must be replaced first
    if user.must_change_password:
        force_change_password_screen(user)
        return

    main_app(user)


if __name__ == "__main__":
    run()
