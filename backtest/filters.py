from typing import Tuple

from backtest.models import LifecycleRecord, EntryConditions

class EntryFilter:
    """
    Applies a strategy's entry conditions to a lifecycle record.

    Only fields known at discovery time are read (initial_*, safety flags,
    socials, smart buys, token age). Peak/final values are never touched.
    Every populated condition must hold; unset conditions always pass.
    """

    @staticmethod
    def inspect(record: LifecycleRecord, entry: EntryConditions) -> Tuple[bool, str]:
        """
        Returns (Passed: bool, Reason: str)
        """
        # 1. Risk Score
        if entry.min_risk_score is not None and record.initial_risk_score < entry.min_risk_score:
            return False, f"Risk Score Too Low: {record.initial_risk_score}"
        if entry.max_risk_score is not None and record.initial_risk_score > entry.max_risk_score:
            return False, f"Risk Score Too High: {record.initial_risk_score}"

        # 2. Liquidity
        if entry.min_liquidity is not None and record.initial_liquidity < entry.min_liquidity:
            return False, f"Low Liquidity: ${record.initial_liquidity}"
        if entry.max_liquidity is not None and record.initial_liquidity > entry.max_liquidity:
            return False, f"High Liquidity: ${record.initial_liquidity}"

        # 3. Holders
        if entry.min_holders is not None and record.initial_holders < entry.min_holders:
            return False, f"Too Few Holders: {record.initial_holders}"
        if entry.max_holders is not None and record.initial_holders > entry.max_holders:
            return False, f"Too Many Holders: {record.initial_holders}"

        # Concentration checks only apply when the record carries the data
        if entry.max_top10_percent is not None and record.initial_top10_percent is not None:
            if record.initial_top10_percent > entry.max_top10_percent:
                return False, f"Top 10 Concentration: {record.initial_top10_percent}%"
        if entry.max_single_holder_percent is not None and record.initial_max_holder_percent is not None:
            if record.initial_max_holder_percent > entry.max_single_holder_percent:
                return False, f"Whale Alert: Holder has {record.initial_max_holder_percent}%"

        # 4. Contract Safety
        if entry.require_mint_revoked and record.mint_revoked is not True:
            return False, "Mint Authority Not Revoked"
        if entry.require_freeze_revoked and record.freeze_revoked is not True:
            return False, "Freeze Authority Not Revoked"
        if entry.require_lp_burned and record.lp_burned is not True:
            return False, "LP Not Burned"
        if entry.lp_burned_min_percent is not None and record.lp_burned_percent is not None:
            if record.lp_burned_percent < entry.lp_burned_min_percent:
                return False, f"LP Not Burned Enough: {record.lp_burned_percent}%"

        # 5. Token Age (at discovery)
        if record.token_age_seconds is not None:
            if entry.min_token_age is not None and record.token_age_seconds < entry.min_token_age:
                return False, f"Too Young: {record.token_age_seconds:.0f}s"
            if entry.max_token_age is not None and record.token_age_seconds > entry.max_token_age:
                return False, f"Too Old: {record.token_age_seconds:.0f}s"

        # 6. Socials
        if entry.require_socials:
            if not (record.has_twitter or record.has_telegram or record.has_website):
                return False, "No Socials"
        if entry.require_twitter and record.has_twitter is not True:
            return False, "No Twitter"
        if entry.require_telegram and record.has_telegram is not True:
            return False, "No Telegram"

        # 7. Smart Money (missing count = no smart buys)
        if entry.min_smart_buys is not None:
            smart_buys = record.smart_buys or 0
            if smart_buys < entry.min_smart_buys:
                return False, f"Not Enough Smart Buys: {smart_buys}"

        return True, "Passed Entry Filter"

    @staticmethod
    def passes(record: LifecycleRecord, entry: EntryConditions) -> bool:
        passed, _ = EntryFilter.inspect(record, entry)
        return passed
