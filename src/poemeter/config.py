import os
from dataclasses import dataclass

from poemeter.curl import DEFAULT_REVISION, DEFAULT_TAG_ID, CurlCredentials
from poemeter.subscription import normalize_day


@dataclass
class Config:
    # listen_address: format ":9186" or
    # "0.0.0.0:9186"
    listen_address: "str" = ":9186"
    # auto-fetch interval in minutes
    fetch_interval: "int" = 30
    log_level: "str" = "info"
    # "console" or "json"
    log_format: "str" = "console"
    # granularity of the period summary logged after each sync
    granularity: "str" = "hour"

    cookie: "str" = ""
    form_key: "str" = ""
    tchannel: "str" = ""
    revision: "str" = DEFAULT_REVISION
    tag_id: "str" = DEFAULT_TAG_ID
    # day of the month the subscription renews on (1-31)
    subscription_day: "int" = 1

    @classmethod
    def from_env(cls) -> "Config":
        return cls(
            cookie=os.environ.get("POE_COOKIE", ""),
            form_key=os.environ.get("POE_FORMKEY", ""),
            tchannel=os.environ.get("POE_TCHANNEL", ""),
            revision=os.environ.get("POE_REVISION") or DEFAULT_REVISION,
            tag_id=os.environ.get("POE_TAG_ID") or DEFAULT_TAG_ID,
            subscription_day=_parse_day(os.environ.get("POE_SUBSCRIPTION_DAY", "")),
        )

    @property
    def credentials_complete(self) -> "bool":
        return bool(self.cookie and self.form_key and self.tchannel)

    @property
    def credentials(self) -> "CurlCredentials":
        return CurlCredentials(
            cookie=self.cookie,
            form_key=self.form_key,
            tchannel=self.tchannel,
            revision=self.revision,
            tag_id=self.tag_id,
        )

    def apply_credentials(self, credentials: "CurlCredentials") -> "None":
        """
        overrides the credential fields with the non-empty values
        of `credentials`.
        """
        self.cookie = credentials.cookie or self.cookie
        self.form_key = credentials.form_key or self.form_key
        self.tchannel = credentials.tchannel or self.tchannel
        self.revision = credentials.revision or self.revision
        self.tag_id = credentials.tag_id or self.tag_id


def _parse_day(raw: "str") -> "int":
    try:
        return normalize_day(int(raw))
    except ValueError:
        return 1
