"""Initial database schema

Revision ID: 001
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Catalog tables, owned by the surrounding product
    op.create_table(
        'learners',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP'))
    )

    op.create_table(
        'courses',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('subject', sa.String(64), nullable=False),
        sa.Column('grade_level', sa.String(32), nullable=False)
    )
    op.create_index('ix_courses_subject', 'courses', ['subject'])

    op.create_table(
        'lessons',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('course_id', sa.String(64), sa.ForeignKey('courses.id'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('content', sa.Text(), nullable=True),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0')
    )
    op.create_index('ix_lessons_course_id', 'lessons', ['course_id'])

    op.create_table(
        'enrollments',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('learner_id', sa.String(64), sa.ForeignKey('learners.id'), nullable=False),
        sa.Column('course_id', sa.String(64), sa.ForeignKey('courses.id'), nullable=False),
        sa.Column('enrolled_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.UniqueConstraint('learner_id', 'course_id', name='uq_enrollments_learner_idcourse_id')
    )

    op.create_table(
        'quizzes',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('lesson_id', sa.String(64), sa.ForeignKey('lessons.id'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('passing_score', sa.Integer(), nullable=False, server_default='70')
    )
    op.create_index('ix_quizzes_lesson_id', 'quizzes', ['lesson_id'])

    op.create_table(
        'quiz_questions',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('quiz_id', sa.String(64), sa.ForeignKey('quizzes.id'), nullable=False),
        sa.Column('prompt', sa.Text(), nullable=False),
        sa.Column('options', sa.JSON(), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False, server_default='10'),
        sa.Column('difficulty', sa.String(16), nullable=False, server_default='medium'),
        sa.Column('topic', sa.String(128), nullable=True),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0')
    )
    op.create_index('ix_quiz_questions_quiz_id', 'quiz_questions', ['quiz_id'])

    # Mastery and weak areas
    op.create_table(
        'mastery_states',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('learner_id', sa.String(64), nullable=False),
        sa.Column('subject', sa.String(64), nullable=False),
        sa.Column('grade_level', sa.String(32), nullable=False),
        sa.Column('current_difficulty', sa.String(16), nullable=False, server_default='medium'),
        sa.Column('mastery_level', sa.Integer(), nullable=False, server_default='50'),
        sa.Column('total_sessions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_questions_answered', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_correct', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_wrong', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('best_streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('consecutive_correct', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('consecutive_wrong', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('difficulty_breakdown', sa.JSON(), nullable=False),
        sa.Column('recent_history', sa.JSON(), nullable=False),
        sa.Column('last_session_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.UniqueConstraint(
            'learner_id', 'subject', 'grade_level',
            name='uq_mastery_states_learner_idsubjectgrade_level'
        )
    )

    op.create_table(
        'weak_areas',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('learner_id', sa.String(64), nullable=False),
        sa.Column('subject', sa.String(64), nullable=False),
        sa.Column('topic', sa.String(128), nullable=False),
        sa.Column('error_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('correct_streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_error_at', sa.DateTime(), nullable=True),
        sa.Column('is_resolved', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('resolved_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('learner_id', 'subject', 'topic', name='uq_weak_areas_learner_idsubjecttopic')
    )
    op.create_index(
        'idx_weak_area_ranking', 'weak_areas', ['learner_id', 'subject', 'is_resolved', 'error_count']
    )

    # Gamification ledger
    op.create_table(
        'learner_profiles',
        sa.Column('learner_id', sa.String(64), primary_key=True),
        sa.Column('xp', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('level', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('current_streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('best_streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_activity_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP'))
    )

    op.create_table(
        'xp_ledger',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('learner_id', sa.String(64), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('source', sa.String(32), nullable=True),
        sa.Column('reason', sa.String(255), nullable=False),
        sa.Column('idempotency_key', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.UniqueConstraint('idempotency_key', name='uq_xp_ledger_idempotency_key')
    )
    op.create_index('ix_xp_ledger_learner_id', 'xp_ledger', ['learner_id'])

    op.create_table(
        'badges',
        sa.Column('code', sa.String(64), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(32), nullable=False, server_default='achievement'),
        sa.Column('xp_reward', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('criterion', sa.JSON(), nullable=False)
    )

    op.create_table(
        'badge_awards',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('learner_id', sa.String(64), nullable=False),
        sa.Column('badge_code', sa.String(64), sa.ForeignKey('badges.code'), nullable=False),
        sa.Column('awarded_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.UniqueConstraint('learner_id', 'badge_code', name='uq_badge_awards_learner_idbadge_code')
    )
    op.create_index('ix_badge_awards_learner_id', 'badge_awards', ['learner_id'])

    # Quiz results
    op.create_table(
        'quiz_attempts',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('learner_id', sa.String(64), nullable=False),
        sa.Column('quiz_id', sa.String(64), sa.ForeignKey('quizzes.id'), nullable=False),
        sa.Column('lesson_id', sa.String(64), sa.ForeignKey('lessons.id'), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('total_points', sa.Integer(), nullable=False),
        sa.Column('percentage', sa.Integer(), nullable=False),
        sa.Column('passed', sa.Boolean(), nullable=False),
        sa.Column('is_perfect', sa.Boolean(), nullable=False),
        sa.Column('correct_count', sa.Integer(), nullable=False),
        sa.Column('total_questions', sa.Integer(), nullable=False),
        sa.Column('answers', sa.JSON(), nullable=False),
        sa.Column('xp_earned', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('new_badges', sa.JSON(), nullable=False),
        sa.Column('time_spent', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('feedback', sa.Text(), nullable=True)
    )
    op.create_index('idx_quiz_attempt_learner', 'quiz_attempts', ['learner_id', 'completed_at'])

    op.create_table(
        'lesson_progress',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('learner_id', sa.String(64), nullable=False),
        sa.Column('lesson_id', sa.String(64), sa.ForeignKey('lessons.id'), nullable=False),
        sa.Column('is_completed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('quiz_score', sa.Integer(), nullable=True),
        sa.Column('time_spent', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_accessed_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.UniqueConstraint('learner_id', 'lesson_id', name='uq_lesson_progress_learner_idlesson_id')
    )


def downgrade():
    op.drop_table('lesson_progress')
    op.drop_index('idx_quiz_attempt_learner', table_name='quiz_attempts')
    op.drop_table('quiz_attempts')
    op.drop_index('ix_badge_awards_learner_id', table_name='badge_awards')
    op.drop_table('badge_awards')
    op.drop_table('badges')
    op.drop_index('ix_xp_ledger_learner_id', table_name='xp_ledger')
    op.drop_table('xp_ledger')
    op.drop_table('learner_profiles')
    op.drop_index('idx_weak_area_ranking', table_name='weak_areas')
    op.drop_table('weak_areas')
    op.drop_table('mastery_states')
    op.drop_index('ix_quiz_questions_quiz_id', table_name='quiz_questions')
    op.drop_table('quiz_questions')
    op.drop_index('ix_quizzes_lesson_id', table_name='quizzes')
    op.drop_table('quizzes')
    op.drop_table('enrollments')
    op.drop_index('ix_lessons_course_id', table_name='lessons')
    op.drop_table('lessons')
    op.drop_index('ix_courses_subject', table_name='courses')
    op.drop_table('courses')
    op.drop_table('learners')
