"""Lua scripts for atomic stock operations in Redis.

Product records live in a hash at ``product:{id}`` (fields: stock, status,
price, seller_id, shipping_cost, name). Each reservation key gets a string
at ``reservation:{key}`` holding ``reserved:<qty>`` or ``released:<qty>``.
Only released markers expire.
"""

# Return codes shared by the adapter
RESERVED = 1
INSUFFICIENT = 0
UNAVAILABLE = -1
NOT_FOUND = -2

RESERVE_SCRIPT = """
local product_key = KEYS[1]
local reservation_key = KEYS[2]
local quantity = tonumber(ARGV[1])

-- Replayed reservation: already holding stock under this key
local state = redis.call('GET', reservation_key)
if state and string.sub(state, 1, 9) == 'reserved:' then
    return 1
end

if redis.call('EXISTS', product_key) == 0 then
    return -2
end

if redis.call('HGET', product_key, 'status') ~= 'active' then
    return -1
end

local stock = tonumber(redis.call('HGET', product_key, 'stock') or '0')
if stock < quantity then
    return 0
end

redis.call('HINCRBY', product_key, 'stock', -quantity)
redis.call('SET', reservation_key, 'reserved:' .. quantity)
return 1
"""

RELEASE_SCRIPT = """
local product_key = KEYS[1]
local reservation_key = KEYS[2]
local ttl = tonumber(ARGV[1])

local state = redis.call('GET', reservation_key)
if not state or string.sub(state, 1, 9) ~= 'reserved:' then
    return 0
end

local quantity = tonumber(string.sub(state, 10))
redis.call('HINCRBY', product_key, 'stock', quantity)
redis.call('SET', reservation_key, 'released:' .. quantity, 'EX', ttl)
return 1
"""
