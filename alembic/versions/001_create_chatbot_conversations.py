"""Create chatbot conversation tables

Revision ID: 001_create_chatbot_conversations
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_create_chatbot_conversations'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create chatbot_conversations table
    op.create_table(
        'chatbot_conversations',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('session_token', sa.String(64), nullable=False, unique=True),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('user_role', sa.String(20), nullable=False),
        sa.Column('context', sa.JSON, nullable=False),

        # Lifecycle
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('last_interaction', sa.DateTime, nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime),
    )
    op.create_index(
        'ix_chatbot_conversations_user_token',
        'chatbot_conversations',
        ['user_id', 'session_token'],
    )
    op.create_index(
        'ix_chatbot_conversations_active_recent',
        'chatbot_conversations',
        ['is_active', 'last_interaction'],
    )

    # Create chatbot_messages table (one row per message, insertion ordered)
    op.create_table(
        'chatbot_messages',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            'conversation_id',
            sa.Integer,
            sa.ForeignKey('chatbot_conversations.id'),
            nullable=False,
        ),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('content', sa.Text, nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False),
    )
    op.create_index(
        'ix_chatbot_messages_conversation_id',
        'chatbot_messages',
        ['conversation_id'],
    )


def downgrade() -> None:
    op.drop_index('ix_chatbot_messages_conversation_id', table_name='chatbot_messages')
    op.drop_table('chatbot_messages')
    op.drop_index('ix_chatbot_conversations_active_recent', table_name='chatbot_conversations')
    op.drop_index('ix_chatbot_conversations_user_token', table_name='chatbot_conversations')
    op.drop_table('chatbot_conversations')
