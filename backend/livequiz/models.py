from livequiz import db
from datetime import datetime, timezone
import uuid


def generate_id():
    return str(uuid.uuid4())


def utcnow():
    return datetime.now(timezone.utc)


def isoformat(value):
    if value is None:
        return None
    if value.tzinfo is None:
        # SQLite hands back naive datetimes; everything is stored as UTC
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


class Quiz(db.Model):
    __tablename__ = 'quiz'
    id = db.Column(db.String(36), primary_key=True, default=generate_id)
    title = db.Column(db.Text, nullable=False)
    description = db.Column(db.Text, nullable=True)
    max_players = db.Column(db.Integer, default=10, nullable=False)
    time_type = db.Column(db.String(16), default='per_question', nullable=False)  # per_question, total_quiz
    time_per_question = db.Column(db.Integer, default=30, nullable=False)  # seconds
    total_time = db.Column(db.Integer, default=10, nullable=False)  # minutes
    lives = db.Column(db.Integer, default=3, nullable=False)
    shuffle_answers = db.Column(db.Boolean, default=True, nullable=False)
    questions = db.Column(db.JSON, nullable=False)  # [{question, options, correct_answer}]
    status = db.Column(db.String(16), default='waiting', nullable=False)  # waiting, playing, finished
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow)
    players = db.relationship('Player', back_populates='quiz', order_by='Player.joined_at')

    def to_dict(self, include_players=False):
        data = {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'max_players': self.max_players,
            'time_type': self.time_type,
            'time_per_question': self.time_per_question,
            'total_time': self.total_time,
            'lives': self.lives,
            'shuffle_answers': self.shuffle_answers,
            'questions': self.questions,
            'status': self.status,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }
        if include_players:
            data['players'] = [p.to_dict() for p in self.players]
        return data


class Player(db.Model):
    __tablename__ = 'player'
    id = db.Column(db.String(36), primary_key=True, default=generate_id)
    quiz_id = db.Column(db.String(36), db.ForeignKey('quiz.id'), nullable=False, index=True)
    name = db.Column(db.String(64), nullable=False)
    avatar = db.Column(db.JSON, nullable=True)
    lives = db.Column(db.Integer, default=3, nullable=False)
    score = db.Column(db.Integer, default=0, nullable=False)
    joined_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow)
    quiz = db.relationship('Quiz', back_populates='players')

    __table_args__ = (
        db.CheckConstraint('lives >= 0', name='ck_player_lives_non_negative'),
        db.CheckConstraint('score >= 0', name='ck_player_score_non_negative'),
        db.Index('ix_player_score', 'score'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'quiz_id': self.quiz_id,
            'name': self.name,
            'avatar': self.avatar,
            'lives': self.lives,
            'score': self.score,
            'joined_at': isoformat(self.joined_at),
            'updated_at': isoformat(self.updated_at),
        }


class Answer(db.Model):
    __tablename__ = 'answer'
    id = db.Column(db.String(36), primary_key=True, default=generate_id)
    player_id = db.Column(db.String(36), db.ForeignKey('player.id'), nullable=False, index=True)
    quiz_id = db.Column(db.String(36), db.ForeignKey('quiz.id'), nullable=False, index=True)
    question_index = db.Column(db.Integer, nullable=False)
    answer_index = db.Column(db.Integer, nullable=True)  # null when the timer ran out
    is_correct = db.Column(db.Boolean, default=False, nullable=False)
    time_spent = db.Column(db.Integer, default=0, nullable=False)
    answered_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'player_id': self.player_id,
            'quiz_id': self.quiz_id,
            'question_index': self.question_index,
            'answer_index': self.answer_index,
            'is_correct': self.is_correct,
            'time_spent': self.time_spent,
            'answered_at': isoformat(self.answered_at),
        }
