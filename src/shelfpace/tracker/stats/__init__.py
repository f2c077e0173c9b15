"""Reading statistics, daily rollups and reading goals."""
