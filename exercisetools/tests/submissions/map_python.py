import json
import random
words = random.sample(["ruby", "python", "java"], 2)
# print the words in upper case, as a JSON list
print(json.dumps([word.upper() for word in words]))
