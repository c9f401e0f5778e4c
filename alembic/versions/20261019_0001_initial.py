"""Initial schema: users, schools, event plans

Revision ID: 20261019_0001_initial
Revises:
Create Date: 2026-10-19 00:01:00.000000
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '20261019_0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'Users',
        sa.Column('UserID', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('FirstName', sa.String(length=100), nullable=False),
        sa.Column('LastName', sa.String(length=100), nullable=False),
        sa.Column('Email', sa.String(length=255), nullable=False, unique=True),
        sa.Column('HashedPassword', sa.String(length=255), nullable=False),
        sa.Column('DateCreated', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('LastUpdated', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('IsActive', sa.Boolean(), nullable=True),
        sa.Column('LastLogin', sa.DateTime(), nullable=True),
        sa.Column('IsAdmin', sa.Boolean(), nullable=True),
    )
    op.create_table(
        'UserSession',
        sa.Column('SessionID', sa.Uuid(), primary_key=True),
        sa.Column('UserID', sa.Integer(), sa.ForeignKey('Users.UserID'), nullable=False),
        sa.Column('CreatedAt', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('ExpiresAt', sa.DateTime(), nullable=True),
        sa.Column('IsActive', sa.Boolean(), nullable=True),
        sa.Column('LastSeen', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('IPAddress', sa.String(length=45), nullable=True),
        sa.Column('UserAgent', sa.String(length=255), nullable=True),
    )
    op.create_table(
        'School',
        sa.Column('SchoolID', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('Name', sa.String(length=255), nullable=False),
        sa.Column('JoinCode', sa.String(length=32), nullable=False, unique=True),
        sa.Column('Mascot', sa.String(length=100), nullable=True),
        sa.Column('IsActive', sa.Boolean(), nullable=True),
        sa.Column('CreatedAt', sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_table(
        'SchoolMembership',
        sa.Column('SchoolMembershipID', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('SchoolID', sa.Integer(), sa.ForeignKey('School.SchoolID'), nullable=False),
        sa.Column('UserID', sa.Integer(), sa.ForeignKey('Users.UserID'), nullable=False),
        sa.Column('Role', sa.String(length=16), nullable=False, server_default='member'),
        sa.Column('SchoolYear', sa.String(length=16), nullable=False),
        sa.Column('Status', sa.String(length=16), nullable=False, server_default='approved'),
        sa.Column('CreatedAt', sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint('SchoolID', 'UserID', 'SchoolYear', name='uq_school_membership'),
    )
    op.create_table(
        'EventPlan',
        sa.Column('EventPlanID', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('SchoolID', sa.Integer(), sa.ForeignKey('School.SchoolID'), nullable=False),
        sa.Column('Title', sa.String(length=255), nullable=False),
        sa.Column('Description', sa.Text(), nullable=True),
        sa.Column('EventType', sa.String(length=100), nullable=True),
        sa.Column('EventDate', sa.DateTime(), nullable=True),
        sa.Column('Location', sa.String(length=255), nullable=True),
        sa.Column('Budget', sa.String(length=100), nullable=True),
        sa.Column('SchoolYear', sa.String(length=16), nullable=False),
        sa.Column('Status', sa.String(length=32), nullable=False, server_default='draft'),
        sa.Column('CreatedBy', sa.Integer(), sa.ForeignKey('Users.UserID'), nullable=False),
        sa.Column('CreatedAt', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('UpdatedAt', sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index('ix_EventPlan_SchoolID_Status', 'EventPlan', ['SchoolID', 'Status'])
    op.create_table(
        'EventPlanMember',
        sa.Column('EventPlanMemberID', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'EventPlanID', sa.Integer(), sa.ForeignKey('EventPlan.EventPlanID'), nullable=False
        ),
        sa.Column('UserID', sa.Integer(), sa.ForeignKey('Users.UserID'), nullable=False),
        sa.Column('Role', sa.String(length=16), nullable=False),
        sa.Column('CreatedAt', sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint('EventPlanID', 'UserID', name='uq_event_plan_member'),
    )
    op.create_table(
        'EventPlanTask',
        sa.Column('EventPlanTaskID', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'EventPlanID', sa.Integer(), sa.ForeignKey('EventPlan.EventPlanID'), nullable=False
        ),
        sa.Column('Title', sa.String(length=255), nullable=False),
        sa.Column('Description', sa.Text(), nullable=True),
        sa.Column('DueDate', sa.DateTime(), nullable=True),
        sa.Column('Completed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('AssignedTo', sa.Integer(), sa.ForeignKey('Users.UserID'), nullable=True),
        sa.Column('CreatedBy', sa.Integer(), sa.ForeignKey('Users.UserID'), nullable=True),
        sa.Column('SortOrder', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('TimingTag', sa.String(length=32), nullable=True),
        sa.Column('CreatedAt', sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_table(
        'EventPlanApproval',
        sa.Column('EventPlanApprovalID', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'EventPlanID', sa.Integer(), sa.ForeignKey('EventPlan.EventPlanID'), nullable=False
        ),
        sa.Column('UserID', sa.Integer(), sa.ForeignKey('Users.UserID'), nullable=False),
        sa.Column('Vote', sa.String(length=16), nullable=False),
        sa.Column('Comment', sa.Text(), nullable=True),
        sa.Column('CreatedAt', sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint('EventPlanID', 'UserID', name='uq_event_plan_approval'),
    )
    op.create_table(
        'EventPlanMessage',
        sa.Column('EventPlanMessageID', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'EventPlanID', sa.Integer(), sa.ForeignKey('EventPlan.EventPlanID'), nullable=False
        ),
        sa.Column('AuthorID', sa.Integer(), sa.ForeignKey('Users.UserID'), nullable=True),
        sa.Column('Message', sa.Text(), nullable=False),
        sa.Column('CreatedAt', sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_table(
        'EventPlanResource',
        sa.Column('EventPlanResourceID', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'EventPlanID', sa.Integer(), sa.ForeignKey('EventPlan.EventPlanID'), nullable=False
        ),
        sa.Column('KnowledgeArticleID', sa.Integer(), nullable=True),
        sa.Column('Title', sa.String(length=255), nullable=False),
        sa.Column('Url', sa.String(length=1000), nullable=True),
        sa.Column('Notes', sa.Text(), nullable=True),
        sa.Column('AddedBy', sa.Integer(), sa.ForeignKey('Users.UserID'), nullable=True),
        sa.Column('CreatedAt', sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_table(
        'AppErrorLog',
        sa.Column('ErrorID', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('OccurredAt', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('RequestID', sa.String(length=64), nullable=True),
        sa.Column('Method', sa.String(length=16), nullable=True),
        sa.Column('Path', sa.String(length=500), nullable=True),
        sa.Column('StatusCode', sa.Integer(), nullable=True),
        sa.Column('ErrorType', sa.String(length=100), nullable=True),
        sa.Column('UserID', sa.Integer(), nullable=True),
        sa.Column('SchoolID', sa.Integer(), nullable=True),
        sa.Column('ClientIP', sa.String(length=45), nullable=True),
        sa.Column('UserAgent', sa.String(length=255), nullable=True),
        sa.Column('Message', sa.Text(), nullable=True),
        sa.Column('StackTrace', sa.Text(), nullable=True),
    )


def downgrade():
    for table in (
        'AppErrorLog',
        'EventPlanResource',
        'EventPlanMessage',
        'EventPlanApproval',
        'EventPlanTask',
        'EventPlanMember',
    ):
        op.drop_table(table)
    op.drop_index('ix_EventPlan_SchoolID_Status', table_name='EventPlan')
    for table in ('EventPlan', 'SchoolMembership', 'School', 'UserSession', 'Users'):
        op.drop_table(table)
