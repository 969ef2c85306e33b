"""Quota cost per YouTube Data API v3 resource method."""

from typing import Mapping, Optional

DEFAULT_QUOTA_COST = 1

YOUTUBE_API_QUOTA_COSTS = {
    "activities.list": 1,
    "captions.list": 50,
    "captions.insert": 400,
    "captions.update": 450,
    "captions.delete": 50,
    "captions.download": 200,
    "channelBanners.insert": 50,
    "channels.list": 1,
    "channels.update": 50,
    "channelSections.list": 1,
    "channelSections.insert": 50,
    "channelSections.update": 50,
    "channelSections.delete": 50,
    "comments.list": 1,
    "comments.insert": 50,
    "comments.update": 50,
    "comments.setModerationStatus": 50,
    "comments.delete": 50,
    "commentThreads.list": 1,
    "commentThreads.insert": 50,
    "i18nLanguages.list": 1,
    "i18nRegions.list": 1,
    "members.list": 1,
    "membershipsLevels.list": 1,
    "playlistItems.list": 1,
    "playlistItems.insert": 50,
    "playlistItems.update": 50,
    "playlistItems.delete": 50,
    "playlists.list": 1,
    "playlists.insert": 50,
    "playlists.update": 50,
    "playlists.delete": 50,
    "search.list": 100,
    "subscriptions.list": 1,
    "subscriptions.insert": 50,
    "subscriptions.delete": 50,
    "thumbnails.set": 50,
    "videoAbuseReportReasons.list": 1,
    "videoCategories.list": 1,
    "videos.list": 1,
    "videos.insert": 1600,
    "videos.update": 50,
    "videos.rate": 50,
    "videos.getRating": 1,
    "videos.reportAbuse": 50,
    "videos.delete": 50,
    "watermarks.set": 50,
    "watermarks.unset": 50,
}


def get_quota_cost(
    resource_method: str, overrides: Optional[Mapping[str, int]] = None
) -> int:
    """Return the quota cost of ``resource_method``, defaulting to 1."""
    if overrides and resource_method in overrides:
        return overrides[resource_method]
    return YOUTUBE_API_QUOTA_COSTS.get(resource_method, DEFAULT_QUOTA_COST)
