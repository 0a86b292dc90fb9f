"""initial schema : pharmalink v1, alertes urgentes + missions d'animation

Revision ID: 001_initial
Create Date: 02/10/2026
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = '001_initial'
down_revision = None

# Valeurs des Enums
USER_TYPE = ('titulaire', 'laboratoire', 'preparateur', 'conseiller', 'etudiant', 'animateur')
CREATOR_TYPE = ('pharmacy', 'laboratory')
POSITION_TYPE = ('preparateur', 'conseiller', 'etudiant', 'animateur')
ALERT_STATUS = ('active', 'filled', 'expired', 'cancelled')
RESPONSE_STATUS = ('interested', 'accepted', 'rejected')
MISSION_STATUS = (
    'draft', 'open', 'proposal_sent', 'animator_accepted', 'confirmed',
    'assigned', 'in_progress', 'completed', 'cancelled',
)
SUBSCRIPTION_TIER = ('free', 'starter', 'pro', 'business', 'premium')
AVAILABILITY_STATUS = ('booked',)


# ── Fonctions SQL ────────────────────────────────────────────
# Pré-filtre géographique côté base (rayon de l'alerte). Le filtrage fin
# (préférences, rayon utilisateur, créateur) reste dans engine/matching.

HAVERSINE = """
    6371.0 * 2 * asin(sqrt(
        power(sin(radians(u.current_latitude - alert_lat) / 2), 2)
        + cos(radians(alert_lat)) * cos(radians(u.current_latitude))
        * power(sin(radians(u.current_longitude - alert_lng) / 2), 2)
    ))
"""

FIND_CANDIDATES = f"""
CREATE OR REPLACE FUNCTION find_candidates_for_urgent_alert(
    alert_lat double precision,
    alert_lng double precision,
    alert_radius_km integer,
    alert_position_type text
)
RETURNS TABLE (
    user_id integer,
    user_type text,
    latitude double precision,
    longitude double precision,
    urgent_alerts_enabled boolean,
    urgent_alerts_radius_km integer,
    specialties varchar[],
    distance_km double precision
)
LANGUAGE sql STABLE AS $$
    SELECT * FROM (
        SELECT u.id,
               u.user_type::text,
               u.current_latitude,
               u.current_longitude,
               np.urgent_alerts_enabled,
               np.urgent_alerts_radius_km,
               ARRAY[]::varchar[],
               {HAVERSINE} AS distance_km
        FROM users u
        JOIN notification_preferences np ON np.user_id = u.id
        WHERE u.is_active
          AND np.urgent_alerts_enabled
          AND u.user_type::text = alert_position_type
          AND u.current_latitude IS NOT NULL
          AND u.current_longitude IS NOT NULL
    ) c
    WHERE c.distance_km <= alert_radius_km
    ORDER BY c.distance_km;
$$;
"""

FIND_ANIMATORS = f"""
CREATE OR REPLACE FUNCTION find_animators_for_urgent_alert(
    alert_lat double precision,
    alert_lng double precision,
    alert_radius_km integer,
    alert_specialties text[]
)
RETURNS TABLE (
    user_id integer,
    user_type text,
    latitude double precision,
    longitude double precision,
    urgent_alerts_enabled boolean,
    urgent_alerts_radius_km integer,
    specialties varchar[],
    distance_km double precision
)
LANGUAGE sql STABLE AS $$
    SELECT * FROM (
        SELECT u.id,
               u.user_type::text,
               u.current_latitude,
               u.current_longitude,
               np.urgent_alerts_enabled,
               np.urgent_alerts_radius_km,
               COALESCE(ap.animation_specialties, ARRAY[]::varchar[]),
               {HAVERSINE} AS distance_km
        FROM users u
        JOIN notification_preferences np ON np.user_id = u.id
        LEFT JOIN animator_profiles ap ON ap.id = u.id
        WHERE u.is_active
          AND np.urgent_alerts_enabled
          AND u.user_type = 'animateur'
          AND u.current_latitude IS NOT NULL
          AND u.current_longitude IS NOT NULL
          AND (
              COALESCE(cardinality(alert_specialties), 0) = 0
              OR ap.animation_specialties::text[] && alert_specialties
          )
    ) a
    WHERE a.distance_km <= alert_radius_km
    ORDER BY a.distance_km;
$$;
"""

# Verrou sur la ligne alerte : deux acceptations concurrentes sont sérialisées,
# la seconde voit status <> 'active' et sort sans rien écrire.
ACCEPT_CANDIDATE = """
CREATE OR REPLACE FUNCTION accept_urgent_alert_candidate(
    p_alert_id integer,
    p_candidate_id integer
)
RETURNS text
LANGUAGE plpgsql AS $$
DECLARE
    v_alert_status alertstatus;
    v_response_status responsestatus;
BEGIN
    SELECT status INTO v_alert_status
    FROM urgent_alerts WHERE id = p_alert_id
    FOR UPDATE;

    IF v_alert_status IS NULL OR v_alert_status <> 'active' THEN
        RETURN 'alert_not_active';
    END IF;

    SELECT status INTO v_response_status
    FROM urgent_alert_responses
    WHERE alert_id = p_alert_id AND candidate_id = p_candidate_id
    FOR UPDATE;

    IF NOT FOUND THEN
        RETURN 'response_not_found';
    END IF;
    IF v_response_status <> 'interested' THEN
        RETURN 'response_not_interested';
    END IF;

    UPDATE urgent_alert_responses
       SET status = 'accepted', updated_at = now()
     WHERE alert_id = p_alert_id AND candidate_id = p_candidate_id;

    UPDATE urgent_alert_responses
       SET status = 'rejected', updated_at = now()
     WHERE alert_id = p_alert_id
       AND candidate_id <> p_candidate_id
       AND status = 'interested';

    UPDATE urgent_alerts
       SET status = 'filled', filled_at = now(), updated_at = now()
     WHERE id = p_alert_id;

    RETURN 'accepted';
END;
$$;
"""

EXPIRE_ALERTS = """
CREATE OR REPLACE FUNCTION expire_urgent_alerts(p_now timestamptz DEFAULT now())
RETURNS integer
LANGUAGE plpgsql AS $$
DECLARE
    v_count integer;
BEGIN
    UPDATE urgent_alerts
       SET status = 'expired', updated_at = p_now
     WHERE status = 'active' AND expires_at <= p_now;
    GET DIAGNOSTICS v_count = ROW_COUNT;
    RETURN v_count;
END;
$$;
"""

FUNCTIONS = (
    "find_candidates_for_urgent_alert(double precision, double precision, integer, text)",
    "find_animators_for_urgent_alert(double precision, double precision, integer, text[])",
    "accept_urgent_alert_candidate(integer, integer)",
    "expire_urgent_alerts(timestamptz)",
)


def upgrade() -> None:
    # ── 1. CREATION MANUELLE DES TYPES ENUM (SÉCURISÉE) ──
    enums = {
        "usertype": USER_TYPE,
        "creatortype": CREATOR_TYPE,
        "positiontype": POSITION_TYPE,
        "alertstatus": ALERT_STATUS,
        "responsestatus": RESPONSE_STATUS,
        "missionstatus": MISSION_STATUS,
        "subscriptiontier": SUBSCRIPTION_TIER,
        "availabilitystatus": AVAILABILITY_STATUS,
    }

    for name, values in enums.items():
        vals_str = ", ".join([f"'{v}'" for v in values])
        op.execute(f"""
            DO $$
            BEGIN
                IF NOT EXISTS (SELECT 1 FROM pg_type WHERE typname = '{name}') THEN
                    CREATE TYPE {name} AS ENUM ({vals_str});
                END IF;
            END $$;
        """)

    # ── 2. CREATION DES TABLES ──
    # postgresql.ENUM(..., create_type=False) : les types existent déjà (étape 1).

    op.create_table("users",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("email", sa.String, nullable=False),
        sa.Column("user_type", postgresql.ENUM(*USER_TYPE, name='usertype', create_type=False), nullable=False),
        sa.Column("first_name", sa.String, nullable=True),
        sa.Column("last_name", sa.String, nullable=True),
        sa.Column("photo_url", sa.String, nullable=True),
        sa.Column("is_active", sa.Boolean, server_default=sa.true()),
        sa.Column("current_latitude", sa.Float, nullable=True),
        sa.Column("current_longitude", sa.Float, nullable=True),
        sa.Column("current_city", sa.String, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_user_type", "users", ["user_type"])

    op.create_table("notification_preferences",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False),
        sa.Column("urgent_alerts_enabled", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("urgent_alerts_radius_km", sa.Integer, nullable=True),
    )

    op.create_table("animator_profiles",
        sa.Column("id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("animation_specialties", postgresql.ARRAY(sa.String), nullable=False, server_default="{}"),
        sa.Column("mobility_zones", postgresql.ARRAY(sa.String), nullable=False, server_default="{}"),
        sa.Column("daily_rate_min", sa.Float, nullable=True),
        sa.Column("average_rating", sa.Float, nullable=True),
        sa.Column("missions_completed", sa.Integer, server_default="0"),
    )

    op.create_table("subscriptions",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False),
        sa.Column("tier", postgresql.ENUM(*SUBSCRIPTION_TIER, name='subscriptiontier', create_type=False), nullable=False, server_default="free"),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("auto_renew", sa.Boolean, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table("monthly_usage",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("period", sa.Date, nullable=False),
        sa.Column("missions_published", sa.Integer, nullable=False, server_default="0"),
        sa.Column("missions_confirmed", sa.Integer, nullable=False, server_default="0"),
        sa.Column("alerts_sent", sa.Integer, nullable=False, server_default="0"),
        sa.UniqueConstraint("user_id", "period", name="uq_usage_user_period"),
    )
    op.create_index("ix_monthly_usage_user_id", "monthly_usage", ["user_id"])

    op.create_table("urgent_alerts",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("creator_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("creator_type", postgresql.ENUM(*CREATOR_TYPE, name='creatortype', create_type=False), nullable=False),
        sa.Column("title", sa.String, nullable=False),
        sa.Column("description", sa.String, nullable=True),
        sa.Column("position_type", postgresql.ENUM(*POSITION_TYPE, name='positiontype', create_type=False), nullable=False),
        sa.Column("required_specialties", postgresql.ARRAY(sa.String), nullable=False, server_default="{}"),
        sa.Column("start_date", sa.Date, nullable=False),
        sa.Column("end_date", sa.Date, nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("latitude", sa.Float, nullable=False),
        sa.Column("longitude", sa.Float, nullable=False),
        sa.Column("radius_km", sa.Integer, nullable=False, server_default="30"),
        sa.Column("city", sa.String, nullable=True),
        sa.Column("hourly_rate", sa.Float, nullable=True),
        sa.Column("status", postgresql.ENUM(*ALERT_STATUS, name='alertstatus', create_type=False), nullable=False, server_default="active"),
        sa.Column("notified_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("filled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("end_date >= start_date", name="ck_alert_dates"),
    )
    op.create_index("ix_urgent_alerts_creator_id", "urgent_alerts", ["creator_id"])
    op.create_index("ix_urgent_alerts_status", "urgent_alerts", ["status"])
    op.create_index("ix_urgent_alerts_expires_at", "urgent_alerts", ["expires_at"])

    op.create_table("urgent_alert_responses",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("alert_id", sa.Integer, sa.ForeignKey("urgent_alerts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("candidate_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("status", postgresql.ENUM(*RESPONSE_STATUS, name='responsestatus', create_type=False), nullable=False, server_default="interested"),
        sa.Column("message", sa.String, nullable=True),
        sa.Column("response_time", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("alert_id", "candidate_id", name="uq_alert_candidate"),
    )
    op.create_index("ix_urgent_alert_responses_alert_id", "urgent_alert_responses", ["alert_id"])
    op.create_index("ix_urgent_alert_responses_candidate_id", "urgent_alert_responses", ["candidate_id"])

    op.create_table("animation_missions",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("client_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("client_type", postgresql.ENUM(*CREATOR_TYPE, name='creatortype', create_type=False), nullable=False),
        sa.Column("animator_id", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("match_id", sa.Integer, nullable=True),
        sa.Column("title", sa.String, nullable=False),
        sa.Column("description", sa.String, nullable=True),
        sa.Column("mission_type", sa.String, nullable=True),
        sa.Column("specialties_required", postgresql.ARRAY(sa.String), nullable=False, server_default="{}"),
        sa.Column("city", sa.String, nullable=True),
        sa.Column("department", sa.String, nullable=True),
        sa.Column("region", sa.String, nullable=True),
        sa.Column("latitude", sa.Float, nullable=True),
        sa.Column("longitude", sa.Float, nullable=True),
        sa.Column("start_date", sa.Date, nullable=False),
        sa.Column("end_date", sa.Date, nullable=False),
        sa.Column("daily_rate_min", sa.Float, nullable=True),
        sa.Column("daily_rate_max", sa.Float, nullable=True),
        sa.Column("daily_rate", sa.Float, nullable=True),
        sa.Column("status", postgresql.ENUM(*MISSION_STATUS, name='missionstatus', create_type=False), nullable=False, server_default="draft"),
        sa.Column("connection_fee", sa.Float, nullable=True),
        sa.Column("fee_included", sa.String, nullable=True),
        sa.Column("proposal_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancel_reason", sa.String, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("end_date >= start_date", name="ck_mission_dates"),
    )
    op.create_index("ix_animation_missions_client_id", "animation_missions", ["client_id"])
    op.create_index("ix_animation_missions_animator_id", "animation_missions", ["animator_id"])
    op.create_index("ix_animation_missions_status", "animation_missions", ["status"])

    op.create_table("animator_availability",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("animator_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("date", sa.Date, nullable=False),
        sa.Column("status", postgresql.ENUM(*AVAILABILITY_STATUS, name='availabilitystatus', create_type=False), nullable=False, server_default="booked"),
        sa.Column("mission_id", sa.Integer, sa.ForeignKey("animation_missions.id", ondelete="SET NULL"), nullable=True),
        sa.UniqueConstraint("animator_id", "date", name="uq_animator_day"),
    )
    op.create_index("ix_animator_availability_animator_id", "animator_availability", ["animator_id"])
    op.create_index("ix_animator_availability_mission_id", "animator_availability", ["mission_id"])

    op.create_table("notifications",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String, nullable=False),
        sa.Column("title", sa.String, nullable=False),
        sa.Column("content", sa.String, nullable=True),
        sa.Column("data", sa.JSON, nullable=False, server_default="{}"),
        sa.Column("read", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])

    op.create_table("push_tokens",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("token", sa.String, nullable=False),
        sa.Column("platform", sa.String, nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "token", name="uq_push_user_token"),
    )
    op.create_index("ix_push_tokens_user_id", "push_tokens", ["user_id"])

    # ── 3. FONCTIONS SQL (géo + arbitrage) ──
    op.execute(FIND_CANDIDATES)
    op.execute(FIND_ANIMATORS)
    op.execute(ACCEPT_CANDIDATE)
    op.execute(EXPIRE_ALERTS)


def downgrade() -> None:
    for fn in FUNCTIONS:
        op.execute(f"DROP FUNCTION IF EXISTS {fn}")

    tables = [
        "push_tokens", "notifications",
        "animator_availability", "animation_missions",
        "urgent_alert_responses", "urgent_alerts",
        "monthly_usage", "subscriptions",
        "animator_profiles", "notification_preferences", "users",
    ]
    for table in tables:
        op.drop_table(table)

    enums = [
        "usertype", "creatortype", "positiontype", "alertstatus",
        "responsestatus", "missionstatus", "subscriptiontier", "availabilitystatus",
    ]
    for e in enums:
        op.execute(f"DROP TYPE IF EXISTS {e}")
