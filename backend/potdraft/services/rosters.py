"""
Roster import collaborators.

Both providers expose the same three calls:
- list_games(): upcoming/live games with their two teams
- team(team_id): the team descriptor for a room
- import_roster(team_id): the draftable players for that team

Any failure (network, HTTP error, empty roster) surfaces as RosterImportError
so room creation can refuse to start with an empty pool.
"""

import logging
from typing import Dict, List, Optional

import requests

from .draft.errors import RosterImportError
from .draft.state import Player, Team
from .settings import config_getter

logger = logging.getLogger(__name__)

TEAM_COLORS = {
    'ARI': '#97233F', 'ATL': '#A71930', 'BAL': '#241773', 'BUF': '#00338D',
    'CAR': '#0085CA', 'CHI': '#0B162A', 'CIN': '#FB4F14', 'CLE': '#311D00',
    'DAL': '#003594', 'DEN': '#FB4F14', 'DET': '#0076B6', 'GB': '#203731',
    'HOU': '#03202F', 'IND': '#002C5F', 'JAX': '#006778', 'KC': '#E31837',
    'LAC': '#0080C6', 'LAR': '#003594', 'LV': '#000000', 'MIA': '#008E97',
    'MIN': '#4F2683', 'NE': '#002244', 'NO': '#D3BC8D', 'NYG': '#0B2265',
    'NYJ': '#125740', 'PHI': '#004C54', 'PIT': '#FFB612', 'SEA': '#002244',
    'SF': '#AA0000', 'TB': '#D50A0A', 'TEN': '#0C2340', 'WAS': '#5A1414',
    'AFC': '#D50A0A', 'NFC': '#003594',
}

SKILL_POSITIONS = ('QB', 'RB', 'WR', 'TE')
POSITION_ORDER = {'QB': 1, 'RB': 2, 'WR': 3, 'TE': 4, 'DST': 5}


def sort_roster(players: List[Player]) -> List[Player]:
    return sorted(players, key=lambda p: (POSITION_ORDER.get(p.position, 99), p.jersey_number))


class EspnRosterProvider:
    """Client for the public ESPN site API."""

    def __init__(self, base_url: str, timeout: float = 5.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self._teams: Dict[str, Team] = {}

    def _get(self, path: str) -> Dict:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"ESPN request failed for {url}: {e}")
            raise RosterImportError(f"Could not reach the roster provider: {e}") from e

    def _team_from_espn(self, data: Dict) -> Team:
        abbrev = data.get('abbreviation', '')
        color = TEAM_COLORS.get(abbrev)
        if not color and data.get('color'):
            color = f"#{data['color']}"
        return Team(
            id=str(data['id']),
            name=data.get('shortDisplayName') or data.get('displayName') or abbrev,
            color=color or '#333333',
            abbreviation=abbrev,
        )

    def list_games(self) -> List[Dict]:
        """Today's games from the scoreboard endpoint."""
        data = self._get('/scoreboard')
        games = []
        for event in data.get('events', []):
            competition = (event.get('competitions') or [None])[0]
            if not competition:
                continue
            sides = {}
            for competitor in competition.get('competitors', []):
                if competitor.get('homeAway') in ('home', 'away') and competitor.get('team'):
                    sides[competitor['homeAway']] = self._team_from_espn(competitor['team'])
            if 'home' not in sides or 'away' not in sides:
                continue
            for team in sides.values():
                self._teams[team.id] = team
            games.append({
                'id': str(event['id']),
                'label': f"{sides['away'].name} @ {sides['home'].name}",
                'status': ((competition.get('status') or {}).get('type') or {}).get('description', 'Scheduled'),
                'home_team': sides['home'],
                'away_team': sides['away'],
            })
        logger.debug(f"Fetched {len(games)} games from ESPN")
        return games

    def team(self, team_id: str) -> Team:
        team_id = str(team_id)
        if team_id not in self._teams:
            data = self._get(f'/teams/{team_id}')
            self._teams[team_id] = self._team_from_espn(data.get('team', data))
        return self._teams[team_id]

    def import_roster(self, team_id: str) -> List[Player]:
        """Skill-position players plus the team defence, QB/RB/WR/TE/DST order."""
        team = self.team(team_id)
        data = self._get(f'/teams/{team_id}/roster')
        prefix = (team.abbreviation or str(team_id)).lower()
        players = []
        for group in data.get('athletes', []):
            for athlete in group.get('items', []):
                pos = (athlete.get('position') or {}).get('abbreviation')
                if pos not in SKILL_POSITIONS:
                    continue
                try:
                    number = int(athlete.get('jersey') or 0)
                except ValueError:
                    number = 0
                players.append(Player(
                    id=f"{prefix}-{athlete['id']}",
                    name=athlete.get('fullName') or athlete.get('displayName', ''),
                    position=pos,
                    jersey_number=number,
                ))
        if not players:
            raise RosterImportError(f"No draftable players found for team {team_id}")
        players.append(Player(id=f"{prefix}-dst", name=f"{team.abbreviation or team.name} Defense", position='DST'))
        logger.info(f"Imported {len(players)} players for {team.name}")
        return sort_roster(players)


# Built-in catalog for offline play and manual games
STATIC_TEAMS = {
    'DET': Team(id='DET', name='Detroit Lions', color=TEAM_COLORS['DET'], abbreviation='DET'),
    'GB': Team(id='GB', name='Green Bay Packers', color=TEAM_COLORS['GB'], abbreviation='GB'),
    'KC': Team(id='KC', name='Kansas City Chiefs', color=TEAM_COLORS['KC'], abbreviation='KC'),
    'SF': Team(id='SF', name='San Francisco 49ers', color=TEAM_COLORS['SF'], abbreviation='SF'),
}

STATIC_PLAYERS = {
    'DET': [('Jared Goff', 'QB', 16), ('Amon-Ra St. Brown', 'WR', 14), ('Jahmyr Gibbs', 'RB', 26),
            ('David Montgomery', 'RB', 5), ('Sam LaPorta', 'TE', 87), ('Jameson Williams', 'WR', 9)],
    'GB': [('Jordan Love', 'QB', 10), ('Josh Jacobs', 'RB', 8), ('Jayden Reed', 'WR', 1),
           ('Christian Watson', 'WR', 9), ('Romeo Doubs', 'WR', 87), ('Luke Musgrave', 'TE', 88)],
    'KC': [('Patrick Mahomes', 'QB', 15), ('Travis Kelce', 'TE', 87), ('Isiah Pacheco', 'RB', 10),
           ('Rashee Rice', 'WR', 4), ('Xavier Worthy', 'WR', 1)],
    'SF': [('Brock Purdy', 'QB', 13), ('Christian McCaffrey', 'RB', 23), ('Deebo Samuel', 'WR', 19),
           ('Brandon Aiyuk', 'WR', 11), ('George Kittle', 'TE', 85)],
}


class StaticRosterProvider:
    """Serves rosters from memory: the built-in catalog or a custom game."""

    def __init__(self, teams: Optional[Dict[str, Team]] = None, rosters: Optional[Dict[str, List[Player]]] = None,
                 games: Optional[List[Dict]] = None):
        if teams is None:
            teams = dict(STATIC_TEAMS)
            rosters = {
                code: [Player(id=f"{code}-{i}", name=name, position=pos, jersey_number=num)
                       for i, (name, pos, num) in enumerate(entries)]
                for code, entries in STATIC_PLAYERS.items()
            }
        self.teams = teams
        self.rosters = rosters or {}
        self.games = games

    def list_games(self) -> List[Dict]:
        if self.games is not None:
            return list(self.games)
        ids = sorted(self.teams)
        games = []
        for home_id, away_id in zip(ids[0::2], ids[1::2]):
            home, away = self.teams[home_id], self.teams[away_id]
            games.append({
                'id': f"{away_id}@{home_id}",
                'label': f"{away.name} @ {home.name}",
                'status': 'Scheduled',
                'home_team': home,
                'away_team': away,
            })
        return games

    def team(self, team_id: str) -> Team:
        team = self.teams.get(str(team_id))
        if team is None:
            raise RosterImportError(f"Unknown team {team_id}")
        return team

    def import_roster(self, team_id: str) -> List[Player]:
        players = self.rosters.get(str(team_id))
        if not players:
            raise RosterImportError(f"No players for team {team_id}")
        return [Player(**p.to_dict()) for p in players]


def build_roster_provider(config):
    """Pick the provider named by ROSTER_PROVIDER."""
    get = config_getter(config)
    kind = (get('ROSTER_PROVIDER', 'espn') or 'espn').lower()
    if kind == 'static':
        return StaticRosterProvider()
    if kind == 'espn':
        return EspnRosterProvider(get('ESPN_BASE_URL'), timeout=float(get('STORE_TIMEOUT_SEC', 5)))
    raise ValueError(f"Unknown ROSTER_PROVIDER {kind!r}")
