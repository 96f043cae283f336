"""Central registry for Redis Lua scripts used by the payment ledger.

Scripts are registered at application startup for EVALSHA. Each returns a
``{code, payload}`` pair:

    - 1: Stored. The payload is the stored payment JSON.

    - 0: Rejected. ``record_payment`` returns the conflicting key kind
         (``'id'`` or ``'address'``); ``compare_and_set_payment`` returns the
         current payment JSON because its version moved on.

    - 2: Missing. The payment key does not exist; the payload is empty.

Both scripts keep the ``payments:watching`` sorted set in step with the payment
document in the same atomic call, so the observer's watch-list never disagrees
with the ledger.
"""

LEDGER_SCRIPTS = {
    "record_payment": """
        local payment_key = KEYS[1]
        local address_key = KEYS[2]
        local all_key = KEYS[3]
        local watching_key = KEYS[4]
        local payment_json = ARGV[1]
        local payment_id = ARGV[2]
        local created_ts = tonumber(ARGV[3])
        local watched = ARGV[4]

        if redis.call('EXISTS', payment_key) == 1 then
            return {0, 'id'}
        end
        if redis.call('EXISTS', address_key) == 1 then
            return {0, 'address'}
        end

        redis.call('SET', payment_key, payment_json)
        redis.call('SET', address_key, payment_id)
        redis.call('ZADD', all_key, created_ts, payment_id)
        if watched == '1' then
            redis.call('ZADD', watching_key, created_ts, payment_id)
        end
        return {1, payment_json}
    """,
    "compare_and_set_payment": """
        local payment_key = KEYS[1]
        local watching_key = KEYS[2]
        local new_val = ARGV[1]
        local expected_version = tonumber(ARGV[2])
        local payment_id = ARGV[3]
        local created_ts = tonumber(ARGV[4])
        local watched = ARGV[5]

        local current_raw = redis.call('GET', payment_key)
        if not current_raw then
            return {2, ''}
        end

        local current = cjson.decode(current_raw)
        if tonumber(current.version) ~= expected_version then
            return {0, current_raw}
        end

        redis.call('SET', payment_key, new_val)
        if watched == '1' then
            redis.call('ZADD', watching_key, created_ts, payment_id)
        else
            redis.call('ZREM', watching_key, payment_id)
        end
        return {1, new_val}
    """,
}
