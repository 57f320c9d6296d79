from datetime import datetime

from crickpool.extensions import db


class FantasyTeam(db.Model):
    __tablename__ = "fantasy_teams"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    match_id = db.Column(db.Integer, db.ForeignKey("matches.id"), nullable=False, index=True)
    name = db.Column(db.String(80), nullable=False, default="")

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    players = db.relationship(
        "FantasyTeamPlayer",
        back_populates="team",
        order_by="FantasyTeamPlayer.position",
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": int(self.id),
            "user_id": int(self.user_id),
            "match_id": int(self.match_id),
            "name": self.name,
            "players": [p.to_dict() for p in self.players],
        }


class FantasyTeamPlayer(db.Model):
    __tablename__ = "fantasy_team_players"
    __table_args__ = (
        db.UniqueConstraint("team_id", "player_id", name="uq_fantasy_team_players_team_player"),
    )

    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.Integer, db.ForeignKey("fantasy_teams.id"), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey("players.id"), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)

    is_captain = db.Column(db.Boolean, nullable=False, default=False)
    is_vice_captain = db.Column(db.Boolean, nullable=False, default=False)

    team = db.relationship("FantasyTeam", back_populates="players")
    player = db.relationship("Player", lazy="joined")

    def to_dict(self):
        return {
            "player_id": int(self.player_id),
            "position": int(self.position or 0),
            "is_captain": bool(self.is_captain),
            "is_vice_captain": bool(self.is_vice_captain),
        }
