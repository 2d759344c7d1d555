from models.bulk_commit_record import BulkCommitRecord
from models.episode import Episode
from models.episode_inventory import EpisodeInventory
from models.scheduled_spot import ScheduledSpot
from models.show import Show

__all__ = [
	"BulkCommitRecord",
	"Episode",
	"EpisodeInventory",
	"ScheduledSpot",
	"Show",
]
