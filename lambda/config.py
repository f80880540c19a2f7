"""Configuration constants for the Oslo transit punctuality tracker."""

# Stops sampled on every run: stop place id -> static metadata
STOPS = {
    'NSR:StopPlace:59872': {'name': 'Oslo S', 'area': 'Sentrum', 'lat': 59.9111, 'lon': 10.7528},
    'NSR:StopPlace:58404': {'name': 'Nationaltheatret', 'area': 'Sentrum', 'lat': 59.9146, 'lon': 10.7316},
    'NSR:StopPlace:58381': {'name': 'Majorstuen', 'area': 'Frogner', 'lat': 59.9297, 'lon': 10.7148},
    'NSR:StopPlace:4029': {'name': 'Stortinget', 'area': 'Sentrum', 'lat': 59.9133, 'lon': 10.7420},
    'NSR:StopPlace:58243': {'name': 'Jernbanetorget', 'area': 'Sentrum', 'lat': 59.9120, 'lon': 10.7502},
}

# Entur Journey Planner
ENTUR_URL = 'https://api.entur.io/journey-planner/v3/graphql'
DEFAULT_CLIENT_NAME = 'pie-derby-oslostat'
TIME_RANGE_SECONDS = 600
DEPARTURES_PER_STOP = 40
FETCH_TIMEOUT_SECONDS = 10
FETCH_ATTEMPTS = 3

# "Delayed" definition: more than 1 minute late after rounding
DELAY_THRESHOLD_MINUTES = 1

UNKNOWN_MODE = 'unknown'

# ~10 days of samples at 15 minute intervals
HISTORY_LIMIT = 1000

# Stats document location
DEFAULT_STATS_KEY = 'data/stats.json'
DEFAULT_STATS_PATH = 'data/stats.json'

# Extra load+merge+commit rounds after a version conflict
COMMIT_RETRIES = 0
